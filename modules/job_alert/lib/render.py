from __future__ import annotations

import re
from collections.abc import Sequence

from .models import JobRecord
from .utils import chunked

# Telegram legacy Markdown control characters
_MD_SPECIAL_RE = re.compile(r"([_*`\[])")


def esc_md(s: str | None) -> str:
    """
    Backslash-escape Telegram (legacy) Markdown control characters in free text
    so company names like "Foo_Bar" cannot break the message entities.
    """
    if s is None:
        return ""
    return _MD_SPECIAL_RE.sub(r"\\\1", str(s))


def link_text(s: str | None) -> str:
    # `]` cannot be escaped in legacy Markdown and would close the link early
    return esc_md(str(s or "").replace("[", "(").replace("]", ")"))


def link_url(url: str) -> str:
    return url.replace("(", "%28").replace(")", "%29")


def format_record(index: int, record: JobRecord) -> str:
    """
    One numbered entry:
        7: Company Name: Acme
        Position: [Senior Engineer](https://...)
    """
    company = esc_md(record.company_name)
    if record.job_link:
        position_line = f"Position: [{link_text(record.position)}]({link_url(record.job_link)})"
    else:
        position_line = f"Position: {esc_md(record.position)}"
    return f"{index}: Company Name: {company}\n{position_line}\n"


def build_header(total: int, date_label: str) -> str:
    return f"{total} positions found\n" + f"Date: {date_label}\n\n"


def render_chunks(
    records: Sequence[JobRecord],
    *,
    chunk_size: int = 12,
    date_label: str,
) -> list[str]:
    """
    Render matching records as message bodies of at most `chunk_size` entries.

    - No records -> no messages.
    - Every chunk repeats the same header: the TOTAL match count and the date.
    - Entry numbers run across chunk boundaries (chunk 2 continues where
      chunk 1 stopped).
    """
    if not records:
        return []

    header = build_header(len(records), date_label)
    messages: list[str] = []
    counter = 0
    for group in chunked(records, chunk_size):
        entries: list[str] = []
        for record in group:
            counter += 1
            entries.append(format_record(counter, record))
        messages.append(header + "\n".join(entries))
    return messages
