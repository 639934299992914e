from __future__ import annotations

from pathlib import Path

from github_auth_provider.utilities.logging import get_logger

logger = get_logger(__name__)


class EmailValidator:
    """Decides whether an authenticated email address may log in.

    Domain entries:
    - `*` allows every address
    - `example.com` allows addresses ending in `@example.com`
    - `.example.com` allows addresses on any subdomain of `example.com`

    Addresses listed in the authenticated emails file (one per line) are
    always allowed. With neither domains nor a file configured, no domain
    restriction is applied.
    """

    def __init__(
        self,
        domains: list[str] | None = None,
        authenticated_emails_file: str | None = None,
    ):
        self.domains = [d.strip().lower() for d in domains or [] if d.strip()]
        self.allowed_emails: set[str] = set()
        if authenticated_emails_file:
            self.allowed_emails = _load_emails(Path(authenticated_emails_file))

    @property
    def restricted(self) -> bool:
        return bool(self.domains or self.allowed_emails)

    def __call__(self, email: str) -> bool:
        email = email.strip().lower()
        if not self.restricted:
            return True
        if not email:
            return False
        if email in self.allowed_emails:
            return True

        _, _, email_domain = email.rpartition("@")
        for domain in self.domains:
            if domain == "*":
                return True
            if domain.startswith("."):
                if email_domain.endswith(domain):
                    return True
            elif email_domain == domain:
                return True

        logger.debug("Email %s is not in an allowed domain", email)
        return False


def _load_emails(path: Path) -> set[str]:
    emails = set()
    for line in path.read_text().splitlines():
        line = line.strip().lower()
        if line and not line.startswith("#"):
            emails.add(line)
    return emails
