from __future__ import annotations

import re

MENTION_RE = re.compile(r"@([\w.+-]+@[\w.-]+\.[A-Za-z]{2,})")


def extract_mention_emails(text: str | None) -> list[str]:
  out: list[str] = []
  seen: set[str] = set()
  for m in MENTION_RE.finditer(text or ""):
    email = m.group(1).lower()
    if email in seen:
      continue
    seen.add(email)
    out.append(email)
  return out
