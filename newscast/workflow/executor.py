"""Workflow executor: runs an ordered list of named steps with retries.

Each step is invoked through the retry executor. Its result is stored in
the run's result map under the step name, and the same map object is
passed to every later step. The first step that fails for good aborts the
run with a WorkflowStepError naming that step.
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence

from newscast.errors import WorkflowStepError
from newscast.workflow.retry import RetryExecutor, RetryPolicy

logger = logging.getLogger(__name__)

StepFunction = Callable[[Any, Dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class NamedStep:
    """A step built from a plain function.

    Attributes:
        name: Unique name of the step within a workflow.
        run: Async callable taking (context, results_so_far).
        policy: Retry policy for this step, overriding the workflow default.
    """

    name: str
    run: StepFunction
    policy: Optional[RetryPolicy] = None


class WorkflowExecutor:
    """Executes steps strictly in order, stopping at the first exhausted failure.

    Holds no per-run state and can be shared across concurrent runs.

    Example:
        executor = WorkflowExecutor(RetryExecutor(), RetryPolicy(max_attempts=3))
        results = await executor.execute(
            [NamedStep("a", step_a), NamedStep("b", step_b)], context
        )
    """

    def __init__(
        self,
        retry_executor: Optional[RetryExecutor] = None,
        default_policy: Optional[RetryPolicy] = None,
    ):
        self.retry_executor = retry_executor or RetryExecutor()
        self.default_policy = default_policy or RetryPolicy()

    @staticmethod
    def _check_names(steps: Sequence[Any]) -> None:
        seen = set()
        for step in steps:
            if step.name in seen:
                raise ValueError(f"Duplicate step name in workflow: {step.name}")
            seen.add(step.name)

    async def _run_steps(
        self,
        steps: Sequence[Any],
        context: Any,
        policy: Optional[RetryPolicy],
        initial_results: Optional[Dict[str, Any]],
        variant: str,
    ) -> Dict[str, Any]:
        self._check_names(steps)
        results: Dict[str, Any] = dict(initial_results or {})
        workflow_policy = policy or self.default_policy
        names = " -> ".join(step.name for step in steps)
        logger.info(f"Starting {variant} workflow: {names}")

        for position, step in enumerate(steps, start=1):
            step_policy = getattr(step, "policy", None) or workflow_policy
            logger.info(f"Step {position}/{len(steps)} {step.name}: starting")
            try:
                result = await self.retry_executor.run(
                    partial(step.run, context, results),
                    step_policy,
                    operation_name=f"Step {step.name}",
                )
            except Exception as e:
                logger.error(f"Step {step.name} failed, aborting workflow: {e}")
                raise WorkflowStepError(step.name, e) from e

            results[step.name] = result
            logger.info(f"Step {position}/{len(steps)} {step.name}: done")

        return results

    async def execute(
        self,
        steps: Sequence[Any],
        context: Any,
        policy: Optional[RetryPolicy] = None,
        initial_results: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run steps in order and return the accumulated results.

        Args:
            steps: Ordered steps; each has a ``name``, an async
                ``run(context, results)`` and optionally a ``policy``.
            context: Run context passed to every step.
            policy: Retry policy overriding the workflow default.
            initial_results: Results from earlier work to seed the map with
                (used when resuming a run after an asynchronous job).

        Returns:
            Map of step name to step result.

        Raises:
            WorkflowStepError: If a step fails after exhausting its retries.
            ValueError: If two steps share a name.
        """
        return await self._run_steps(steps, context, policy, initial_results, "synchronous")

    async def execute_async(
        self,
        steps: Sequence[Any],
        context: Any,
        policy: Optional[RetryPolicy] = None,
        initial_results: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run steps whose last step submits work instead of completing it.

        Identical to ``execute``; the difference is only in the steps supplied.
        The final result is a job submission rather than a finished artifact.
        """
        return await self._run_steps(steps, context, policy, initial_results, "asynchronous")
