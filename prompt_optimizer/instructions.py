"""Instruction templates sent to the model for rewriting prompts."""

from dataclasses import dataclass
from textwrap import dedent
from typing import Tuple


@dataclass(frozen=True)
class RewriteInstruction:
    """A system prompt plus an input template, filled per request."""
    system: str
    input_template: str

    def render(self, **values: str) -> Tuple[str, str]:
        """Return (system_prompt, user_input) with values substituted."""
        return self.system.format(**values), self.input_template.format(**values)


OPTIMIZE = RewriteInstruction(
    system=(
        "You are a prompt optimization expert. Help the user optimize their "
        "prompt so that it is clearer, more specific and more effective."
    ),
    input_template="Please optimize the following prompt to make it clearer and more effective:\n\n{prompt}",
)

ITERATE = RewriteInstruction(
    system=dedent(
        """\
        You are a professional AI prompt optimization expert. Improve the prompt below based on the feedback.

        Current prompt:
        {prompt}

        User feedback:
        {feedback}

        Based on the user's feedback, produce an improved prompt that keeps the same format and structure \
        while specifically addressing the problems the user raised."""
    ),
    input_template="",
)
