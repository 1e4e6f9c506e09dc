import re
import unittest

from src.shared.feed.extractor import (
    ExtractionConfig,
    MediaExtractor,
    VideoRule,
    extract_video_url,
    find_inline_media,
    find_short_links,
)
from src.shared.feed.models import Post, PostKind

INLINE_A = "http://41.media.tumblr.com/" + "a" * 32 + "/tumblr_inline_abc123.png"
INLINE_B = "http://65.media.tumblr.com/" + "b" * 32 + "/tumblr_inline_def456.gif"


class RecordingResolver:
    def __init__(self, answers: dict[str, str]) -> None:
        self.answers = answers
        self.calls: list[str] = []

    def __call__(self, slug: str) -> str:
        self.calls.append(slug)
        return self.answers.get(slug, "")


class TestPatterns(unittest.TestCase):
    def test_inline_media(self) -> None:
        body = f'<p><img src="{INLINE_A}"/> text <img src="{INLINE_B}"/></p>'
        self.assertEqual(find_inline_media(body), [INLINE_A, INLINE_B])
        self.assertEqual(find_inline_media("http://41.media.tumblr.com/short/tumblr_inline_x.png"), [])

    def test_short_links_in_order(self) -> None:
        caption = '<a href="https://gfycat.com/SecondOne">x</a> <a href="http://www.gfycat.com/third">y</a>'
        self.assertEqual(find_short_links('<a href="https://gfycat.com/First">' + caption), ["First", "SecondOne", "third"])

    def test_video_hd_url_rule(self) -> None:
        player = '{"hdUrl":"https:\\/\\/vt.tumblr.com\\/tumblr_o1abc","other":1}'
        self.assertEqual(extract_video_url(player), "https://vt.tumblr.com/tumblr_o1abc.mp4")

    def test_video_source_tag_rule(self) -> None:
        player = '<video><source src="https://blog.tumblr.com/video_file/123/tumblr_nxyz/480" type="video/mp4"></video>'
        self.assertEqual(
            extract_video_url(player),
            "https://blog.tumblr.com/video_file/123/tumblr_nxyz.mp4",
        )

    def test_video_no_match(self) -> None:
        self.assertIsNone(extract_video_url('<iframe src="https://www.youtube.com/embed/x"></iframe>'))

    def test_custom_rule_list(self) -> None:
        rules = [VideoRule(name="data_src", pattern=re.compile(r'data-src="([^"]+)"'))]
        self.assertEqual(extract_video_url('<x data-src="https://v/clip">', rules), "https://v/clip.mp4")


class TestMediaExtractor(unittest.TestCase):
    def test_photo_gallery_then_caption_links(self) -> None:
        resolver = RecordingResolver({"Good": "https://giant.gfycat.com/Good.mp4"})
        extractor = MediaExtractor(resolver=resolver)
        post = Post(
            post_id=1,
            kind=PostKind.PHOTO,
            photo_url="http://x/single.jpg",
            photos=("http://x/a.jpg", "http://x/b.jpg"),
            photo_caption='<a href="https://gfycat.com/Good">g</a><a href="https://gfycat.com/Gone">h</a>',
        )
        self.assertEqual(
            extractor.extract(post),
            ["http://x/a.jpg", "http://x/b.jpg", "https://giant.gfycat.com/Good.mp4"],
        )
        self.assertEqual(resolver.calls, ["Good", "Gone"])

    def test_single_photo_when_no_gallery(self) -> None:
        extractor = MediaExtractor(resolver=RecordingResolver({}))
        post = Post(post_id=1, kind=PostKind.PHOTO, photo_url="http://x/single.jpg")
        self.assertEqual(extractor.extract(post), ["http://x/single.jpg"])

    def test_ignore_photos_still_resolves_caption(self) -> None:
        resolver = RecordingResolver({"Clip": "https://g/Clip.mp4"})
        extractor = MediaExtractor(resolver=resolver, config=ExtractionConfig(ignore_photos=True))
        post = Post(
            post_id=1,
            kind=PostKind.PHOTO,
            photo_url="http://x/single.jpg",
            photo_caption='<a href="https://gfycat.com/Clip">',
        )
        self.assertEqual(extractor.extract(post), ["https://g/Clip.mp4"])

    def test_ignore_videos_skips_resolver(self) -> None:
        resolver = RecordingResolver({"Clip": "https://g/Clip.mp4"})
        extractor = MediaExtractor(resolver=resolver, config=ExtractionConfig(ignore_videos=True))
        post = Post(
            post_id=1,
            kind=PostKind.PHOTO,
            photo_url="http://x/single.jpg",
            photo_caption='<a href="https://gfycat.com/Clip">',
        )
        self.assertEqual(extractor.extract(post), ["http://x/single.jpg"])
        self.assertEqual(resolver.calls, [])

    def test_text_posts_inline_media(self) -> None:
        extractor = MediaExtractor(resolver=RecordingResolver({}))
        answer = Post(post_id=1, kind=PostKind.ANSWER, answer=f'<img src="{INLINE_A}">')
        regular = Post(post_id=2, kind=PostKind.REGULAR, regular_body=f'<img src="{INLINE_B}">')
        self.assertEqual(extractor.extract(answer), [INLINE_A])
        self.assertEqual(extractor.extract(regular), [INLINE_B])

        ignoring = MediaExtractor(resolver=RecordingResolver({}), config=ExtractionConfig(ignore_photos=True))
        self.assertEqual(ignoring.extract(regular), [])

    def test_video_post_with_caption_link(self) -> None:
        resolver = RecordingResolver({"Extra": "https://g/Extra.mp4"})
        extractor = MediaExtractor(resolver=resolver)
        post = Post(
            post_id=1,
            kind=PostKind.VIDEO,
            video_player='"hdUrl":"https:\\/\\/vt.tumblr.com\\/tumblr_v1"',
            video_caption='<a href="https://gfycat.com/Extra">',
        )
        self.assertEqual(extractor.extract(post), ["https://vt.tumblr.com/tumblr_v1.mp4", "https://g/Extra.mp4"])

    def test_video_post_foreign_embed_yields_nothing(self) -> None:
        extractor = MediaExtractor(resolver=RecordingResolver({}))
        post = Post(post_id=1, kind=PostKind.VIDEO, video_player="<iframe src='https://vimeo.com/1'>")
        self.assertEqual(extractor.extract(post), [])

    def test_ignore_videos_on_video_post(self) -> None:
        extractor = MediaExtractor(resolver=RecordingResolver({}), config=ExtractionConfig(ignore_videos=True))
        post = Post(post_id=1, kind=PostKind.VIDEO, video_player='"hdUrl":"https://vt.tumblr.com/tumblr_v1"')
        self.assertEqual(extractor.extract(post), [])

    def test_unknown_kind(self) -> None:
        extractor = MediaExtractor(resolver=RecordingResolver({}))
        self.assertEqual(extractor.extract(Post(post_id=1, kind=PostKind.UNKNOWN)), [])


if __name__ == "__main__":
    unittest.main()
