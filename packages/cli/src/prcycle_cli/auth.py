"""Where `prcycle collect` gets its GitHub token.

Checked in order, first hit wins:
  1. PRCYCLE_GITHUB_TOKEN, a token scoped to this tool
  2. GITHUB_TOKEN, as injected by GitHub Actions
  3. GH_TOKEN, the variable the GitHub CLI itself honours
  4. the session stored by `gh auth login`

Commands that only read the store (report, timeline, dates) never need one.
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("PRCYCLE_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")
_GH_TIMEOUT_SECONDS = 5


def _gh_session_token(hostname: str) -> str | None:
    try:
        result = subprocess.run(
            ["gh", "auth", "token", "--hostname", hostname],
            capture_output=True,
            text=True,
            timeout=_GH_TIMEOUT_SECONDS,
        )
    except FileNotFoundError:
        logger.debug("gh CLI is not installed.")
        return None
    except subprocess.TimeoutExpired:
        logger.warning("`gh auth token` did not answer within %ds; ignoring the gh session.", _GH_TIMEOUT_SECONDS)
        return None

    if result.returncode != 0:
        logger.debug("gh CLI has no session for %s: %s", hostname, result.stderr.strip())
        return None
    return result.stdout.strip() or None


def resolve_github_token(hostname: str = "github.com") -> str | None:
    """Return a GitHub token, or None when no source provides one.

    Never raises. `prcycle collect` turns None into a UsageError.
    """
    for name in TOKEN_ENV_VARS:
        token = os.environ.get(name, "").strip()
        if token:
            logger.debug("Using GitHub token from $%s.", name)
            return token

    token = _gh_session_token(hostname)
    if token:
        logger.debug("Using GitHub token from the gh CLI session for %s.", hostname)
    return token
