"""
Renders a proposal into an MDX page for the ENS docs.

Steps, in order:
1. Under the first occurrence of the title, insert the "[EP x.y] title"
   heading, the authors placeholder and a status/votes table for the kind.
2. Prepend the front matter the docs site reads (authors, proposal type).
3. Pretty-print with mdformat so the output matches the docs formatting.
4. Base64-encode the UTF-8 bytes for the GitHub contents API.
"""
import base64
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

import mdformat

from proposal_publisher.data_models.schemas import Proposal, ProposalKind
from proposal_publisher.exceptions import RenderError

FORUM_URL = "https://discuss.ens.domains/t/"
MDFORMAT_EXTENSIONS = {"frontmatter", "tables"}
MDFORMAT_OPTIONS = {"wrap": "keep", "number": False}


@dataclass(frozen=True)
class KindTemplate:
    """Heading prefix and voting links for one proposal kind."""
    prefix: str
    voting_links: Callable[[str], List[Tuple[str, str]]]


def _executable_links(proposal_id: str) -> List[Tuple[str, str]]:
    return [
        ("Agora", f"https://agora.ensdao.org/proposals/{proposal_id}"),
        ("Tally", f"https://tally.ensdao.org/dao/proposal/{proposal_id}"),
    ]


def _social_links(proposal_id: str) -> List[Tuple[str, str]]:
    return [("Snapshot", f"https://snapshot.box/#/s:ens.eth/proposal/{proposal_id}")]


# One entry per ProposalKind. A new kind needs a new entry; there is no default.
KIND_TEMPLATES: Dict[ProposalKind, KindTemplate] = {
    ProposalKind.EXECUTABLE: KindTemplate(prefix="EP", voting_links=_executable_links),
    ProposalKind.SOCIAL: KindTemplate(prefix="EP", voting_links=_social_links),
}


def template_for(kind: ProposalKind) -> KindTemplate:
    return KIND_TEMPLATES[kind]


def voting_links(kind: ProposalKind, proposal_id: str) -> List[Tuple[str, str]]:
    """Voting-platform (label, url) pairs for a proposal."""
    return template_for(kind).voting_links(proposal_id)


def metadata_table(kind: ProposalKind, proposal_id: str) -> str:
    """Status / discussion / votes table shown under the proposal heading."""
    votes = ", ".join(f"[{label}]({url})" for label, url in voting_links(kind, proposal_id))
    rows = [
        ("**Status**", "Active"),
        ("**Discussion Thread**", f"[Forum]({FORUM_URL})"),
        ("**Votes**", votes),
    ]
    left = max(len(key) for key, _ in rows)
    right = max(len(value) for _, value in rows)

    lines = [f"| {rows[0][0].ljust(left)} | {rows[0][1].ljust(right)} |"]
    lines.append(f"| {'-' * left} | {'-' * right} |")
    for key, value in rows[1:]:
        lines.append(f"| {key.ljust(left)} | {value.ljust(right)} |")
    return "\n".join(lines)


def inject_metadata(proposal: Proposal, number: str) -> str:
    """Replace the first occurrence of the title with the numbered heading block.

    Leaves the body unchanged when there is no title or the title does not
    appear verbatim in the body.
    """
    if not proposal.title:
        return proposal.body

    prefix = template_for(proposal.kind).prefix
    heading = (
        f"[{prefix} {number}] {proposal.title}\n\n"
        f"::authors\n\n"
        f"\n{metadata_table(proposal.kind, proposal.id)}\n"
    )
    return proposal.body.replace(proposal.title, heading, 1)


def yaml_quote(value: str) -> str:
    """Single-quoted YAML scalar, so handles like 0x... stay strings."""
    return "'" + value.replace("'", "''") + "'"


def add_front_matter(markdown: str, author: str, kind: ProposalKind) -> str:
    return (
        "---\n"
        "authors:\n"
        f"  - {yaml_quote(author)}\n"
        "proposal:\n"
        f"  type: '{kind.value}'\n"
        "---\n"
        "\n"
        f"{markdown}"
    )


def format_markdown(markdown: str) -> str:
    """Pretty-print Markdown/MDX. Formatting the output again is a no-op."""
    return mdformat.text(markdown, extensions=MDFORMAT_EXTENSIONS, options=MDFORMAT_OPTIONS)


def encode_content(text: str) -> str:
    """Base64 of the UTF-8 bytes, as the GitHub contents API expects."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(content: str) -> str:
    return base64.b64decode(content).decode("utf-8")


def render_document(proposal: Proposal, number: str) -> str:
    """Render the formatted MDX text for a proposal.

    Raises:
        RenderError: If the document cannot be formatted
    """
    markdown = inject_metadata(proposal, number)
    markdown = add_front_matter(markdown, proposal.author, proposal.kind)
    try:
        return format_markdown(markdown)
    except Exception as e:
        raise RenderError(str(e), proposal_id=proposal.id) from e


def render(proposal: Proposal, number: str) -> str:
    """Render and encode a proposal for committing."""
    return encode_content(render_document(proposal, number))
