"""Utility functions for loading and filling prompt text files."""
from pathlib import Path
import typing as t


def load_prompt(prompt_name: str, prompts_dir: t.Optional[str] = None) -> str:
    """
    Load a prompt from a text file.

    Args:
        prompt_name: Name of the prompt file (without .txt extension)
        prompts_dir: Optional custom path to prompts directory.
                    Defaults to this module's parent directory.

    Returns:
        The content of the prompt file as a string.

    Raises:
        FileNotFoundError: If the prompt file doesn't exist.
        IOError: If there's an error reading the file.
    """
    if prompts_dir is None:
        prompts_dir = Path(__file__).resolve().parent

    prompt_file = Path(prompts_dir) / f"{prompt_name}.txt"

    if not prompt_file.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_file}")

    try:
        with open(prompt_file, 'r', encoding='utf-8') as f:
            return f.read()
    except IOError as e:
        raise IOError(f"Error reading prompt file {prompt_file}: {e}")


def render_prompt(template: str, values: dict[str, t.Any]) -> str:
    """
    Fill ``{NAME}`` placeholders in a prompt template.

    Plain replacement is used instead of str.format so the JSON examples in the
    templates can keep their braces.

    Args:
        template: Prompt text containing {NAME} placeholders
        values: Placeholder names mapped to values (converted with str())

    Returns:
        The template with every known placeholder replaced.
    """
    rendered = template
    for name, value in values.items():
        rendered = rendered.replace(f"{{{name}}}", str(value))
    return rendered
