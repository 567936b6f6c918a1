"""
Research loop: goal -> plan -> code per step -> replayed execution.
"""

import logging
import re
from typing import Callable, Optional

from replaybook.context import NotebookContext
from replaybook.kernel import ExecutionResult
from replaybook.llm import AskLLM
from replaybook.notebook import CellOrigin, CellType
from replaybook.session import Session, SessionManager

logger = logging.getLogger(__name__)

StepCallback = Callable[[int, str, str, ExecutionResult], None]

PLAN_PROMPT = (
    "You are a notebook assistant. Given the user goal:\n\"{goal}\"{datasets}\n\n"
    "Return a numbered list of plain English steps to complete this task "
    "using Python and pandas. Use available data where possible."
)

CODE_PROMPT = (
    "Write a clean Python code snippet to complete this task:\n\n\"{step}\"\n{variables}\n"
    "IMPORTANT: Return ONLY the Python code without any markdown formatting, "
    "backticks, or explanations. Just the raw Python code that can be executed directly."
)

_STEP_RE = re.compile(r"^\s*\d+[.)]\s+(.+?)\s*$")
_FENCE_RE = re.compile(r"^```[\w+-]*\s*\n(.*?)\n?```\s*$", re.DOTALL)


def generate_plan(goal: str, ask: AskLLM, datasets: Optional[list[str]] = None) -> str:
    """Ask for a numbered plan, mentioning datasets already available."""
    extra = ""
    if datasets:
        names = "\n".join(f"- {name}" for name in datasets)
        extra = f"\n\nNote: These datasets are already available locally:\n{names}"
    return ask(PLAN_PROMPT.format(goal=goal, datasets=extra)).strip()


def parse_plan_steps(plan_text: str) -> list[str]:
    """Extract the text of each numbered line (``1. ...`` or ``1) ...``)."""
    steps = []
    for line in plan_text.splitlines():
        match = _STEP_RE.match(line)
        if match:
            steps.append(match.group(1))
    return steps


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence if the model added one."""
    text = text.strip()
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text


def generate_code_for_step(step: str, ask: AskLLM, context: Optional[NotebookContext] = None) -> str:
    """Ask for code implementing one plan step."""
    variables = ""
    if context and context.variables:
        listing = "\n".join(f"- {name} = {value}" for name, value in sorted(context.variables.items()))
        variables = f"\nVariables already defined in this session:\n{listing}\n"
    return strip_code_fences(ask(CODE_PROMPT.format(step=step, variables=variables)))


def run_research(
    goal: str,
    ask: AskLLM,
    manager: SessionManager,
    on_step: Optional[StepCallback] = None,
    datasets: Optional[list[str]] = None,
) -> Session:
    """
    Drive a whole research session for ``goal``.

    Adds the intent and plan cells, then generates and executes code for each
    plan step in order. A failed step is recorded and the loop moves on. The
    session is saved, and a flat copy of the notebook written, even if an
    error interrupts the loop. An existing session for the same goal is continued, not replaced.

    Args:
        goal: Natural-language research goal
        ask: Text-completion callable
        manager: Session store
        on_step: Called with (index, step, code, result) after each step
        datasets: Names of datasets to mention in the plan prompt

    Returns:
        The session, already saved
    """
    session = manager.open(goal)
    session.add_cell(CellType.INTENT, CellOrigin.USER, goal)
    try:
        plan = generate_plan(goal, ask, datasets)
        session.add_cell(CellType.PLAN, CellOrigin.AI, plan)
        steps = parse_plan_steps(plan)
        logger.info("Plan for %s has %d step(s)", session.id, len(steps))

        for index, step in enumerate(steps, start=1):
            code = generate_code_for_step(step, ask, session.context)
            result = session.run_code(code, CellOrigin.AI)
            if not result.success:
                logger.warning("Step %d failed: %s", index, step)
            if on_step is not None:
                on_step(index, step, code, result)
    finally:
        manager.save(session)
        manager.save_flat(session.notebook)
    return session
