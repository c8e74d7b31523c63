"""Prerequisite graph validation and per-enrollment satisfaction checks.

Acyclicity is enforced once, when a path is authored, by a topological sort.
Completion requests then only need a flat membership test against the
enrollment's completed modules.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter
from uuid import UUID

import structlog

from src.catalog.models import Module
from src.core.exceptions import CyclicPrerequisiteError, InvalidModuleDefinitionError

from .models import ModuleProgress


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PrerequisiteCheck:
    """Outcome of checking one module's prerequisites for an enrollment."""

    satisfied: bool
    unmet_module_ids: list[UUID] = field(default_factory=list)


class PrerequisiteResolver:
    """Validates prerequisite graphs and checks them against progress."""

    def validate_graph(self, modules: Iterable[Module]) -> list[UUID]:
        """Topologically sort a path's modules by their prerequisites.

        Args:
            modules: Every module of one learning path

        Returns:
            Module ids in an order where each module follows its prerequisites

        Raises:
            InvalidModuleDefinitionError: A prerequisite is outside the path
            CyclicPrerequisiteError: The prerequisites form a cycle
        """
        ordered = sorted(modules, key=lambda m: (m.order_index, str(m.id)))
        known = {m.id for m in ordered}

        sorter: TopologicalSorter[UUID] = TopologicalSorter()
        for module in ordered:
            foreign = module.prerequisite_module_ids - known
            if foreign:
                raise InvalidModuleDefinitionError(
                    module.id,
                    "prerequisites outside the path: "
                    + ", ".join(sorted(str(m) for m in foreign)),
                )
            sorter.add(module.id, *sorted(module.prerequisite_module_ids, key=str))

        try:
            order = list(sorter.static_order())
        except CycleError as e:
            cycle = e.args[1] if len(e.args) > 1 else []
            logger.warning("prerequisite_cycle_detected", cycle=[str(m) for m in cycle])
            raise CyclicPrerequisiteError(cycle) from e

        return order

    def check_satisfied(
        self,
        module: Module,
        progress_by_module: Mapping[UUID, ModuleProgress],
    ) -> PrerequisiteCheck:
        """Check every prerequisite of ``module`` is COMPLETED.

        Args:
            module: Module the learner wants to complete
            progress_by_module: The enrollment's progress rows keyed by module id

        Returns:
            PrerequisiteCheck listing unmet module ids (sorted for stable messages)
        """
        unmet = [
            prereq_id
            for prereq_id in module.prerequisite_module_ids
            if not (
                (progress := progress_by_module.get(prereq_id)) is not None
                and progress.is_completed
            )
        ]
        unmet.sort(key=str)
        return PrerequisiteCheck(satisfied=not unmet, unmet_module_ids=unmet)
