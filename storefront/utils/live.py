"""
Primitives réactives minimales sur asyncio.

- LiveValue: valeur courante + notification des écouteurs à chaque set (équivalent d'un BehaviorSubject)
- Scope: durée de vie d'un composant; une fois détruit, les attentes gardées sont abandonnées
"""
import asyncio
import inspect
from typing import Awaitable, Callable, Generic, List, TypeVar

T = TypeVar("T")


class ScopeDestroyed(Exception):
    pass


class LiveValue(Generic[T]):
    def __init__(self, value: T):
        self._value = value
        self._listeners: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for listener in list(self._listeners):
            listener(value)

    def listen(self, listener: Callable[[T], None]) -> Callable[[], None]:
        """Enregistre un écouteur synchrone; retourne la fonction de désabonnement."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe


class Scope:
    def __init__(self):
        self._destroyed = asyncio.Event()

    @property
    def destroyed(self) -> bool:
        return self._destroyed.is_set()

    @property
    def alive(self) -> bool:
        return not self._destroyed.is_set()

    async def guard(self, aw: Awaitable[T]) -> T:
        """
        Attend aw tant que le scope est vivant.
        Lève ScopeDestroyed si le scope est (ou devient) détruit avant la fin de aw.
        """
        if self.destroyed:
            if inspect.iscoroutine(aw):
                aw.close()
            raise ScopeDestroyed()
        task = asyncio.ensure_future(aw)
        waiter = asyncio.ensure_future(self._destroyed.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if task in done:
            return task.result()
        raise ScopeDestroyed()

    def destroy(self) -> None:
        self._destroyed.set()
