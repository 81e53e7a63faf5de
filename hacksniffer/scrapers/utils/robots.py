"""robots.txt parsing for the crawl-politeness check."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class RobotsRules:
    """Allow/Disallow prefixes that apply to one crawler identity.

    Politeness is advisory: a path matching nothing is allowed.
    """

    allow: List[str] = field(default_factory=list)
    disallow: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, content: Optional[str], user_agent: str) -> "RobotsRules":
        """Parse robots.txt content for the given crawler User-Agent.

        Consecutive ``User-agent`` lines form one group. A group applies when
        one of its agents is ``*`` or appears (case-insensitively) inside the
        crawler's own User-Agent string. Rules of every applicable group are
        accumulated.

        Args:
            content: Raw robots.txt body, or None when there is none
            user_agent: The crawler's full User-Agent header value

        Returns:
            RobotsRules for this crawler
        """
        rules = cls()
        if not content:
            return rules

        crawler = user_agent.lower()
        group_agents: List[str] = []
        in_agent_run = False  # True while reading consecutive User-agent lines
        applies = False

        for raw_line in content.splitlines():
            line = raw_line.split("#", 1)[0].strip()
            if not line or ":" not in line:
                continue

            directive, value = line.split(":", 1)
            directive = directive.strip().lower()
            value = value.strip()

            if directive == "user-agent":
                if not in_agent_run:
                    group_agents = []
                    in_agent_run = True
                group_agents.append(value.lower())
                applies = any(
                    agent == "*" or (agent and agent in crawler)
                    for agent in group_agents
                )
                continue

            in_agent_run = False
            if not applies or not value:
                continue
            if directive == "allow":
                rules.allow.append(value)
            elif directive == "disallow":
                rules.disallow.append(value)

        return rules

    def is_allowed(self, path: str) -> bool:
        """Check whether a request path may be crawled."""
        if any(path.startswith(prefix) for prefix in self.allow):
            return True
        if any(path.startswith(prefix) for prefix in self.disallow):
            return False
        return True
