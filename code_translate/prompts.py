"""Translation prompt construction: system instructions and per-chunk messages."""

from .config import ConvertConfig

SYSTEM_PROMPT = """\
You are an expert programmer translating {source} code to {target}.

Rules:
- Output ONLY the translated code in a single fenced code block. No explanations.
- The input may be one fragment of a larger file. Translate exactly the code you \
are given; do not add imports, wrappers or code from outside the fragment.
- Preserve comments, blank lines and the order of top-level statements.
- Keep identifiers unchanged unless the target language requires otherwise.
- The result must be functionally equivalent to the source.\
"""


def build_instructions(config: ConvertConfig) -> str:
    """Instruction text sent with every chunk.

    A file given via `instructions_path` is used verbatim instead of the template.
    """
    if config.instructions_path is not None:
        return config.instructions_path.read_text(encoding="utf-8").strip()

    instructions = SYSTEM_PROMPT.format(
        source=config.source_dialect, target=config.target_dialect,
    )
    if config.caveats:
        instructions += f"\n\nAdditional instructions:\n{config.caveats.strip()}"
    return instructions


def build_messages(instructions: str, chunk_text: str) -> list[dict]:
    """Build the messages array for the API call.

    Returns list of {"role": ..., "content": ...} dicts; litellm adapts the
    system message per provider.
    """
    return [
        {"role": "system", "content": instructions},
        {"role": "user", "content": f"Code:\n{chunk_text}"},
    ]
