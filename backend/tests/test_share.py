"""
Share Page Tests

Crawler detection, redirect sanitizing and Open Graph rendering.
"""

from petport.share.pages import (
    SHARE_KINDS,
    canonical_url,
    is_crawler,
    render_share_page,
    safe_redirect,
)


class TestCrawlerDetection:
    def test_known_crawlers(self):
        assert is_crawler("facebookexternalhit/1.1 (+http://www.facebook.com/externalhit_uatext.php)")
        assert is_crawler("Twitterbot/1.0")
        assert is_crawler("WhatsApp/2.23.20.0")
        assert is_crawler("Mozilla/5.0 (compatible; Discordbot/2.0)")

    def test_browsers_are_not_crawlers(self):
        assert not is_crawler("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) Safari/604.1")
        assert not is_crawler("")
        assert not is_crawler(None)


class TestSafeRedirect:
    """Only absolute http(s) targets are followed"""

    def test_decodes_https(self):
        assert safe_redirect("https%3A%2F%2Fpetport.app%2Fprofile%2F123") == "https://petport.app/profile/123"

    def test_rejects_other_schemes(self):
        assert safe_redirect("javascript:alert(1)") is None
        assert safe_redirect("data:text/html,hi") is None
        assert safe_redirect("/relative/path") is None
        assert safe_redirect(None) is None


class TestRenderSharePage:
    """Meta tags are escaped; the redirect script is optional"""

    def test_profile_page(self):
        page = render_share_page("profile", "pet-1", "Rex")

        assert "<title>Rex&#x27;s PetPort Profile</title>" in page
        assert 'property="og:url" content="https://petport.app/profile/pet-1"' in page
        assert "general-og.png" in page
        assert 'name="twitter:card" content="summary_large_image"' in page
        assert "<script>" not in page

    def test_missing_page_uses_lost_pet_image(self):
        page = render_share_page("missing", "pet-1", "Rex")

        assert "MISSING: Rex" in page
        assert "og-lostpet.png" in page
        assert canonical_url(SHARE_KINDS["missing"], "pet-1") == "https://petport.app/missing/pet-1"

    def test_pet_name_is_escaped(self):
        page = render_share_page("gallery", "pet-1", '<script>alert("x")</script>')

        assert "<script>alert" not in page
        assert "&lt;script&gt;" in page

    def test_redirect_script(self):
        page = render_share_page("care", "pet-1", "Rex", redirect="https://petport.app/care/pet-1")

        assert 'window.location.href = "https://petport.app/care/pet-1"' in page

    def test_redirect_cannot_close_script_tag(self):
        page = render_share_page("care", "pet-1", "Rex", redirect="https://evil.test/</script><b>")

        assert "</script><b>" not in page
