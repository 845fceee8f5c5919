from typing import Any, Generic, Iterable, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Load

from app.core.db import Base

ModelT = TypeVar('ModelT', bound=Base)


class CRUDBase(Generic[ModelT]):
    """Базовый класс для операций с моделью внутри единицы работы.

    Методы не выполняют commit: границы транзакции задаёт вызывающий
    код, изменения лишь сбрасываются в БД через flush.
    """

    def __init__(self, model: Type[ModelT]) -> None:
        """Инициализация класса."""
        self.model = model

    async def get(
        self,
        session: AsyncSession,
        *predicates: Any,
        many: bool = False,
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        options: Iterable[Load] = (),
        for_update: bool = False,
        **filters: Any,
    ) -> list[ModelT] | ModelT:
        """Универсальная выборка по равенствам полям модели.

        get(..., field=value, ...).

        Параметры:
            session: AsyncSession.
            *predicates: произвольные SQLAlchemy-условия
            (например, Model.flag.is_(False)).
            many: True для списка, False для первой записи или None.
            order_by, limit, offset: необязательные параметры выдачи.
            options: ORM-опции загрузки (selectinload и т.п.).
            for_update: заблокировать выбранные строки до конца транзакции.
            **filters: равенства по полям модели (field=value).

        Исключения:
            ValueError: фильтр по несуществующему полю модели.
        """
        self._validate_filters(filters)
        conditions = [getattr(self.model, k) == v for k, v in filters.items()]
        if predicates:
            conditions.extend(predicates)

        stmt = select(self.model).where(*conditions)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        if options:
            stmt = stmt.options(*options)
        if for_update:
            stmt = stmt.with_for_update()
        # Перечитываем строки, уже загруженные в сессию: статусы могли
        # измениться условным UPDATE в этой же транзакции.
        stmt = stmt.execution_options(populate_existing=True)

        res = await session.execute(stmt)
        return list(res.scalars().all()) if many else res.scalars().first()

    async def get_by_id(
        self,
        session: AsyncSession,
        obj_id: Any,
        *,
        for_update: bool = False,
    ) -> Optional[ModelT]:
        """Получение записи по первичному ключу."""
        return await self.get(session, id=obj_id, for_update=for_update)

    async def create(self, session: AsyncSession, **values: Any) -> ModelT:
        """Создание записи в БД."""
        db_obj = self.model(**values)
        session.add(db_obj)
        await session.flush()
        return db_obj

    async def delete_where(
        self,
        session: AsyncSession,
        *predicates: Any,
    ) -> int:
        """Удаление записей по условию, возвращает число удалённых строк."""
        result = await session.execute(
            delete(self.model)
            .where(*predicates)
            .execution_options(synchronize_session=False),
        )
        return result.rowcount

    def _validate_filters(self, filters: dict[str, Any]) -> None:
        """Валидация фильтров, примененных к get()."""
        unknown = [k for k in filters if not hasattr(self.model, k)]
        if unknown:
            raise ValueError(
                'Некорректные поля фильтра для '
                f'{self.model.__name__}: {unknown}',
            )
