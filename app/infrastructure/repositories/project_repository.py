"""Read access to projects and their todos."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from sqlalchemy.orm import Session

from app.domain.entities import Project, Todo
from app.infrastructure.models import ProjectModel, TodoModel
from app.utils import from_storage_datetime, to_storage_datetime


class ProjectRepository:
    """Load projects together with their open todos."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_with_open_todos(self) -> Sequence[Project]:
        """Return every project with its incomplete todos attached."""

        projects = self.session.query(ProjectModel).order_by(ProjectModel.id).all()
        return self._attach_open_todos(projects)

    def list_owned_by(self, owner_id: int) -> Sequence[Project]:
        projects = (
            self.session.query(ProjectModel)
            .filter(ProjectModel.owner_id == owner_id)
            .order_by(ProjectModel.id)
            .all()
        )
        return self._attach_open_todos(projects)

    def get(self, project_id: int) -> Project | None:
        model = self.session.get(ProjectModel, project_id)
        if model is None:
            return None
        return self._to_entity(model, [self._todo_to_entity(t) for t in model.todos])

    def get_name(self, project_id: int) -> str | None:
        row = (
            self.session.query(ProjectModel.name)
            .filter(ProjectModel.id == project_id)
            .first()
        )
        return row[0] if row else None

    def get_owner_id(self, project_id: int) -> int | None:
        row = (
            self.session.query(ProjectModel.owner_id)
            .filter(ProjectModel.id == project_id)
            .first()
        )
        return row[0] if row else None

    def create(self, project: Project) -> Project:
        model = ProjectModel(name=project.name, color=project.color, owner_id=project.owner_id)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model, [])

    def add_todo(self, project_id: int, todo: Todo) -> Todo:
        model = TodoModel(
            project_id=project_id,
            title=todo.title,
            completed=todo.completed,
            due_date=to_storage_datetime(todo.due_date),
            reminder_date=to_storage_datetime(todo.reminder_date),
            assigned_to=todo.assigned_to,
        )
        if todo.created_at is not None:
            model.created_at = to_storage_datetime(todo.created_at)
        if todo.updated_at is not None:
            model.updated_at = to_storage_datetime(todo.updated_at)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._todo_to_entity(model)

    def _attach_open_todos(self, projects: list[ProjectModel]) -> list[Project]:
        if not projects:
            return []
        todos_by_project: defaultdict[int, list[Todo]] = defaultdict(list)
        todo_models = (
            self.session.query(TodoModel)
            .filter(TodoModel.project_id.in_([project.id for project in projects]))
            .filter(TodoModel.completed.is_(False))
            .order_by(TodoModel.id)
            .all()
        )
        for todo_model in todo_models:
            todos_by_project[todo_model.project_id].append(
                self._todo_to_entity(todo_model)
            )
        return [
            self._to_entity(project, todos_by_project.get(project.id, []))
            for project in projects
        ]

    @staticmethod
    def _to_entity(model: ProjectModel, todos: list[Todo]) -> Project:
        return Project(
            id=model.id,
            name=model.name,
            owner_id=model.owner_id,
            color=model.color,
            todos=todos,
        )

    @staticmethod
    def _todo_to_entity(model: TodoModel) -> Todo:
        return Todo(
            id=model.id,
            project_id=model.project_id,
            title=model.title,
            completed=bool(model.completed),
            due_date=from_storage_datetime(model.due_date),
            reminder_date=from_storage_datetime(model.reminder_date),
            assigned_to=model.assigned_to,
            created_at=from_storage_datetime(model.created_at),
            updated_at=from_storage_datetime(model.updated_at),
        )


__all__ = ["ProjectRepository"]
