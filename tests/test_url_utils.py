import unittest

from utils.url_utils import is_soundcloud_url, is_youtube_url, normalize_supported_url


class UrlUtilsTests(unittest.TestCase):
    def test_source_detection(self):
        self.assertTrue(is_youtube_url("https://youtu.be/IpFX2vq8HKw"))
        self.assertTrue(is_youtube_url("https://www.youtube.com/watch?v=abc"))
        self.assertTrue(is_soundcloud_url("https://soundcloud.com/forss/flickermood"))
        self.assertFalse(is_soundcloud_url("https://vimeo.com/123"))
        self.assertFalse(is_youtube_url(None))

    def test_normalize(self):
        self.assertEqual(normalize_supported_url("https://music.youtube.com/watch?v=abc"),
                         "https://www.youtube.com/watch?v=abc")
        self.assertEqual(normalize_supported_url("https://soundcloud.com/a/b?si=1&utm_source=x"),
                         "https://soundcloud.com/a/b")
        self.assertEqual(normalize_supported_url("https://youtu.be/abc?t=10"), "https://youtu.be/abc?t=10")
        self.assertEqual(normalize_supported_url(""), "")


if __name__ == "__main__":
    unittest.main()
