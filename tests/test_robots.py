"""Tests for robots.txt parsing."""

from hacksniffer.scrapers.utils.robots import RobotsRules

UA = "HackathonSnifferBot/0.1 (+contact@example.com)"


class TestRobotsRules:
    """Group matching and prefix rules."""

    def test_wildcard_group(self):
        rules = RobotsRules.parse("User-agent: *\nDisallow: /private\n", UA)
        assert rules.is_allowed("/hackathons") is True
        assert rules.is_allowed("/private/admin") is False

    def test_allow_overrides_disallow(self):
        content = "User-agent: *\nDisallow: /events\nAllow: /events/public\n"
        rules = RobotsRules.parse(content, UA)
        assert rules.is_allowed("/events/public/list") is True
        assert rules.is_allowed("/events/secret") is False

    def test_named_group_matches_inside_user_agent(self):
        content = (
            "User-agent: Googlebot\n"
            "Disallow: /\n"
            "\n"
            "User-agent: hackathonsnifferbot\n"
            "Disallow: /hackathons\n"
        )
        rules = RobotsRules.parse(content, UA)
        assert rules.is_allowed("/hackathons") is False
        assert rules.is_allowed("/about") is True

    def test_consecutive_agent_lines_share_rules(self):
        content = "User-agent: SomeOtherBot\nUser-agent: *\nDisallow: /search\n"
        rules = RobotsRules.parse(content, UA)
        assert rules.is_allowed("/search") is False

    def test_comments_and_empty_disallow(self):
        content = "# robots\nUser-agent: * # everyone\nDisallow:\n"
        rules = RobotsRules.parse(content, UA)
        assert rules.disallow == []
        assert rules.is_allowed("/anything") is True

    def test_missing_content_allows_everything(self):
        assert RobotsRules.parse(None, UA).is_allowed("/hackathons") is True
        assert RobotsRules.parse("", UA).is_allowed("/hackathons") is True
