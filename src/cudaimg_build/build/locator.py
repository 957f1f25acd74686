"""Solution lookup - the precondition every build tool action depends on."""

from __future__ import annotations

import logging
from pathlib import Path

from .policy import BuildPolicy
from .state import SolutionNotFoundError

logger = logging.getLogger(__name__)


def locate_solution(solution_dir: str | Path, solution_name: str, policy: BuildPolicy) -> Path:
    """Verify the solution file exists in its directory.

    Args:
        solution_dir: Directory the build tool will run in
        solution_name: Solution file name, e.g. libcudaimg.sln
        policy: Policy the solution path must satisfy

    Returns:
        Absolute path to the solution file

    Raises:
        SolutionNotFoundError: If the solution file is missing (exit code 1)
        ValueError: If the path violates the policy
    """
    solution = Path(policy.validate_solution_path(Path(solution_dir) / solution_name))
    if not solution.is_file():
        logger.debug(f"Missing solution: {solution}")
        raise SolutionNotFoundError(f"Solution file {solution_name} not found!", 1)
    logger.info(f"Located solution {solution}")
    return solution
