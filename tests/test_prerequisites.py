"""Tests for prerequisite graphs and path validation."""

from uuid import uuid4

import pytest

from src.catalog.models import ContentType, Module
from src.catalog.service import PathValidationService
from src.core.exceptions import CyclicPrerequisiteError, InvalidModuleDefinitionError, NotFoundError
from src.progress.models import ModuleProgress, ModuleProgressStatus
from src.progress.prerequisites import PrerequisiteResolver


def module(path_id, order, prereqs=(), **kwargs) -> Module:
    kwargs.setdefault("body", "text")
    return Module(
        id=uuid4(),
        path_id=path_id,
        order_index=order,
        prerequisite_module_ids=set(prereqs),
        **kwargs,
    )


@pytest.fixture
def resolver() -> PrerequisiteResolver:
    return PrerequisiteResolver()


class TestValidateGraph:
    def test_orders_prerequisites_first(self, resolver):
        path_id = uuid4()
        a = module(path_id, 3)
        b = module(path_id, 2, [a.id])
        c = module(path_id, 1, [b.id])

        order = resolver.validate_graph([c, b, a])

        assert order.index(a.id) < order.index(b.id) < order.index(c.id)

    def test_cycle_is_rejected(self, resolver):
        path_id = uuid4()
        a = module(path_id, 1)
        b = module(path_id, 2, [a.id])
        a.prerequisite_module_ids = frozenset({b.id})

        with pytest.raises(CyclicPrerequisiteError) as exc_info:
            resolver.validate_graph([a, b])

        assert set(exc_info.value.cycle) == {a.id, b.id}

    def test_prerequisite_outside_path(self, resolver):
        path_id = uuid4()
        foreign_id = uuid4()
        a = module(path_id, 1, [foreign_id])

        with pytest.raises(InvalidModuleDefinitionError) as exc_info:
            resolver.validate_graph([a])

        assert str(foreign_id) in exc_info.value.reason

    def test_empty_path(self, resolver):
        assert resolver.validate_graph([]) == []


class TestCheckSatisfied:
    def test_unmet_listed_sorted(self, resolver):
        path_id = uuid4()
        a, b = module(path_id, 1), module(path_id, 2)
        c = module(path_id, 3, [a.id, b.id])
        enrollment_id, user_id = uuid4(), uuid4()
        progress = {
            a.id: ModuleProgress(
                enrollment_id, a.id, user_id, status=ModuleProgressStatus.COMPLETED.value
            ),
            b.id: ModuleProgress(
                enrollment_id, b.id, user_id, status=ModuleProgressStatus.IN_PROGRESS.value
            ),
        }

        check = resolver.check_satisfied(c, progress)

        assert check.satisfied is False
        assert check.unmet_module_ids == [b.id]

    def test_no_prerequisites(self, resolver):
        check = resolver.check_satisfied(module(uuid4(), 1), {})

        assert check.satisfied is True
        assert check.unmet_module_ids == []


class TestPathValidationService:
    @pytest.mark.asyncio
    async def test_valid_path(self, catalog, learning_path):
        service = PathValidationService(catalog)

        result = await service.validate_path(learning_path.path_id)

        assert result.valid is True
        assert result.module_count == 3
        assert result.completion_order == [
            learning_path.m1.id,
            learning_path.m2.id,
            learning_path.m3.id,
        ]

    @pytest.mark.asyncio
    async def test_missing_content_field(self, catalog, learning_path):
        broken = catalog.add_module(
            module(learning_path.path_id, 4, content_type=ContentType.VIDEO.value)
        )

        with pytest.raises(InvalidModuleDefinitionError) as exc_info:
            await PathValidationService(catalog).validate_path(learning_path.path_id)

        assert exc_info.value.module_id == broken.id
        assert "video_url" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_quiz_link_to_missing_quiz(self, catalog, learning_path):
        catalog.quizzes.clear()

        with pytest.raises(InvalidModuleDefinitionError) as exc_info:
            await PathValidationService(catalog).validate_path(learning_path.path_id)

        assert exc_info.value.module_id == learning_path.m3.id

    @pytest.mark.asyncio
    async def test_cycle_in_stored_path(self, catalog, learning_path):
        learning_path.m1.prerequisite_module_ids = frozenset({learning_path.m3.id})

        with pytest.raises(CyclicPrerequisiteError):
            await PathValidationService(catalog).validate_path(learning_path.path_id)

    @pytest.mark.asyncio
    async def test_unknown_path(self, catalog):
        with pytest.raises(NotFoundError):
            await PathValidationService(catalog).validate_path(uuid4())
