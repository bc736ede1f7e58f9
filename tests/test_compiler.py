"""Tests for filter graph compilation.

Features:
- Image/video overlays gated to their time window
- Text boxes and drawtext stages
- Audio branches (trim, volume, delay) and mixing
- Paint order and label uniqueness
"""

from storyreel.render.compiler import AUDIO_MIX_LABEL, CompileContext, compile_filter_graph
from storyreel.render.filters import Background, DrawBox, DrawText, Mix, Overlay, Scale, Trim
from storyreel.render.geometry import resolve_frame_size
from storyreel.render.normalizer import normalize_timeline
from storyreel.schemas.timeline import Geometry, Layer, MediaItem, TimelineItem

LINUX_SANS = "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf"


def _item(item_id, media_id, start=0.0, duration=10.0, geometry=None):
    return TimelineItem(
        id=item_id, media_id=media_id, start_time=start, duration=duration, geometry=geometry
    )


def _compile(layers, library, media_root, style="landscape", total_duration=10.0):
    timeline = normalize_timeline(layers, library, str(media_root))
    ctx = CompileContext(
        timeline=timeline,
        frame=resolve_frame_size(style),
        total_duration=total_duration,
        platform="linux",
    )
    return compile_filter_graph(layers, ctx)


class TestImageAndVideo:
    """Tests for visual media overlays."""

    def test_single_full_frame_image(self, media_root, make_media_file):
        """Test one image over the whole timeline: background, scale, overlay."""
        library = [MediaItem(id="img", type="image", file_path=make_media_file("a.png"))]
        layers = [Layer(id="l0", items=[_item("t0", "img", 0, 10)])]

        graph = _compile(layers, library, media_root)

        assert [type(s) for s in graph.stages] == [Background, Scale, Overlay]
        assert graph.statements == [
            "color=black:size=1920x1080:duration=10:rate=30 [bg]",
            "[0:v] scale=1920:1080:force_original_aspect_ratio=decrease [item_0_0]",
            "[bg][item_0_0] overlay=0:0:enable='between(t,0,10)' [overlay_0]",
        ]
        assert graph.video_output == "overlay_0"
        assert graph.audio_output is None
        assert not graph.has_audio

    def test_video_is_trimmed_before_scaling(self, media_root, make_media_file):
        library = [MediaItem(id="vid", type="video", file_path=make_media_file("v.mp4"))]
        layers = [Layer(id="l0", items=[_item("t0", "vid", 2, 4)])]

        graph = _compile(layers, library, media_root)

        assert [type(s) for s in graph.stages] == [Background, Trim, Scale, Overlay]
        assert graph.statements[1] == "[0:v] trim=duration=4, setpts=PTS-STARTPTS [trim_0_0]"
        assert graph.statements[2].startswith("[trim_0_0] scale=")
        assert "enable='between(t,2,6)'" in graph.statements[3]

    def test_geometry_and_rotation(self, media_root, make_media_file):
        library = [MediaItem(id="img", type="image", file_path=make_media_file("a.png"))]
        geometry = Geometry(x=0.5, y=0.5, width=0.25, height=0.25, rotation=90)
        layers = [Layer(id="l0", items=[_item("t0", "img", geometry=geometry)])]

        graph = _compile(layers, library, media_root)

        scale, overlay = graph.stages[1], graph.stages[2]
        assert (scale.width, scale.height, scale.rotation) == (480, 270, 90)
        assert (overlay.x, overlay.y) == (960, 540)

    def test_later_layers_paint_on_top(self, media_root, make_media_file):
        """Test each overlay composites onto the previous result."""
        library = [
            MediaItem(id="back", type="image", file_path=make_media_file("back.png")),
            MediaItem(id="front", type="image", file_path=make_media_file("front.png")),
        ]
        layers = [
            Layer(id="l0", items=[_item("t0", "back")]),
            Layer(id="l1", items=[_item("t1", "front")]),
        ]

        graph = _compile(layers, library, media_root)

        overlays = [s for s in graph.stages if isinstance(s, Overlay)]
        assert overlays[0].base == "bg"
        assert overlays[0].overlay == "item_0_0"
        assert overlays[1].base == "overlay_0"
        assert overlays[1].overlay == "item_1_0"
        assert graph.video_output == "overlay_1"

    def test_invisible_layer_not_drawn(self, media_root, make_media_file):
        library = [
            MediaItem(id="img", type="image", file_path=make_media_file("a.png")),
            MediaItem(id="hidden", type="image", file_path=make_media_file("h.png")),
        ]
        layers = [
            Layer(id="l0", items=[_item("t0", "img")]),
            Layer(id="l1", visible=False, items=[_item("t1", "hidden")]),
        ]

        graph = _compile(layers, library, media_root)

        assert len([s for s in graph.stages if isinstance(s, Overlay)]) == 1

    def test_blob_item_skipped(self, media_root, make_media_file):
        library = [
            MediaItem(id="blob", type="image", file_path="blob:http://x/1"),
            MediaItem(id="img", type="image", file_path=make_media_file("a.png")),
        ]
        layers = [Layer(id="l0", items=[_item("t0", "blob"), _item("t1", "img")])]

        graph = _compile(layers, library, media_root)

        scales = [s for s in graph.stages if isinstance(s, Scale)]
        assert [s.input for s in scales] == ["0:v"]


class TestText:
    """Tests for text overlays."""

    def test_text_box(self, media_root):
        """Test a 400x100 box with 'Hello World' yields a 40px drawtext."""
        library = [MediaItem(id="title", type="text", text="Hello World")]
        geometry = Geometry(x=0, y=0, width=400 / 1920, height=100 / 1080)
        layers = [Layer(id="l0", items=[_item("t0", "title", 0, 0, geometry)])]

        graph = _compile(layers, library, media_root)

        assert [type(s) for s in graph.stages] == [Background, DrawText]
        assert graph.statements[1] == (
            "[bg] drawtext=text='Hello World':expansion=none:fontsize=40:fontcolor=#ffffff"
            f":fontfile='{LINUX_SANS}':x=0+(400-text_w)/2:y=0+(100-text_h)/2"
            ":shadowcolor=black:shadowx=2:shadowy=2:enable='between(t,0,5)' [text_0]"
        )

    def test_text_duration_falls_back_to_media_duration(self, media_root):
        library = [MediaItem(id="title", type="text", text="Hi", duration=3)]
        layers = [Layer(id="l0", items=[_item("t0", "title", 1, 0)])]

        graph = _compile(layers, library, media_root)

        text = graph.stages[-1]
        assert (text.start, text.end) == (1, 4)

    def test_background_box_drawn_first(self, media_root):
        library = [
            MediaItem(id="title", type="text", text="Boxed", background_color="rgb(0, 0, 255)")
        ]
        layers = [Layer(id="l0", items=[_item("t0", "title", 0, 5)])]

        graph = _compile(layers, library, media_root)

        box, text = graph.stages[1], graph.stages[2]
        assert isinstance(box, DrawBox)
        assert box.color == "#0000ff"
        assert (box.input, box.output) == ("bg", "bgbox_0")
        assert isinstance(text, DrawText)
        assert (text.input, text.output) == ("bgbox_0", "text_1")

    def test_empty_text_skipped(self, media_root):
        library = [MediaItem(id="title", type="text", text="  ")]
        layers = [Layer(id="l0", items=[_item("t0", "title")])]

        graph = _compile(layers, library, media_root)

        assert [type(s) for s in graph.stages] == [Background]
        assert graph.video_output == "bg"


class TestAudio:
    """Tests for audio branches."""

    def test_two_audio_items_are_mixed(self, media_root, make_media_file):
        """Test volume and delay stages only appear when needed."""
        library = [
            MediaItem(id="music", type="audio", file_path=make_media_file("m.mp3"), volume=100),
            MediaItem(id="voice", type="voiceover", file_path=make_media_file("v.mp3"), volume=50),
        ]
        layers = [
            Layer(id="l0", items=[_item("t0", "music", 0, 8), _item("t1", "voice", 2, 6)])
        ]

        graph = _compile(layers, library, media_root)

        assert graph.statements[1:] == [
            "[0:a] atrim=duration=8, asetpts=PTS-STARTPTS [audio_0_0]",
            "[1:a] atrim=duration=6, asetpts=PTS-STARTPTS [atrim_0_1]",
            "[atrim_0_1] volume=0.5 [avol_0_1]",
            "[avol_0_1] adelay=2000|2000 [audio_0_1]",
            "[audio_0_0][audio_0_1] amix=inputs=2:duration=longest [audio_final]",
        ]
        assert graph.audio_branches == ("audio_0_0", "audio_0_1")
        assert graph.audio_output == AUDIO_MIX_LABEL
        assert graph.video_output == "bg"

    def test_single_branch_used_directly(self, media_root, make_media_file):
        library = [MediaItem(id="music", type="audio", file_path=make_media_file("m.mp3"))]
        layers = [Layer(id="l0", items=[_item("t0", "music", 0, 8)])]

        graph = _compile(layers, library, media_root)

        assert graph.audio_output == "audio_0_0"
        assert not any(isinstance(s, Mix) for s in graph.stages)

    def test_muted_and_silent_audio_skipped(self, media_root, make_media_file):
        library = [
            MediaItem(id="muted", type="audio", file_path=make_media_file("a.mp3"), muted=True),
            MediaItem(id="zero", type="audio", file_path=make_media_file("b.mp3"), volume=0),
        ]
        layers = [Layer(id="l0", items=[_item("t0", "muted"), _item("t1", "zero")])]

        graph = _compile(layers, library, media_root)

        assert graph.audio_output is None
        assert graph.audio_branches == ()


class TestLabels:
    def test_output_labels_unique(self, media_root, make_media_file):
        """Test no two stages write the same label."""
        library = [
            MediaItem(id="img", type="image", file_path=make_media_file("a.png")),
            MediaItem(id="vid", type="video", file_path=make_media_file("v.mp4")),
            MediaItem(id="title", type="text", text="Title", background_color="#101010"),
            MediaItem(id="music", type="audio", file_path=make_media_file("m.mp3"), volume=80),
            MediaItem(id="voice", type="voiceover", file_path=make_media_file("v.mp3")),
        ]
        layers = [
            Layer(id="l0", items=[_item("t0", "img"), _item("t1", "vid", 1, 3)]),
            Layer(id="l1", items=[_item("t2", "title", 0, 4), _item("t3", "img", 5, 2)]),
            Layer(id="l2", items=[_item("t4", "music", 0, 10), _item("t5", "voice", 3, 2)]),
        ]

        graph = _compile(layers, library, media_root)

        outputs = [stage.output for stage in graph.stages]
        assert len(outputs) == len(set(outputs))
