"""Name -> clustering routine registry shared by built-in and custom algorithms"""
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass
import inspect

from ..exceptions import DispatchError

FACTORIZATION = "factorization"
DISSIMILARITY = "dissimilarity"
MATRIX = "matrix"

FAMILIES = (FACTORIZATION, DISSIMILARITY, MATRIX)


@dataclass(frozen=True)
class AlgorithmSpec:
    """A registered clustering routine

    Contracts by family:
    - dissimilarity: func(d, k) with d a square n x n dissimilarity matrix
    - matrix: func(x, k, **params) with x the n x p (sub)sampled data
    - factorization: func(x, k, method, seed) with x non-negative
    All return one label per row.
    """
    name: str
    family: str
    func: Callable[..., Any]
    description: str = ""

    @property
    def label(self) -> str:
        """Upper-case name used on the variant axis"""
        return self.name.upper()


class AlgorithmRegistry:
    """Registry of clustering algorithms keyed by unique name"""

    def __init__(self):
        self._entries: Dict[str, AlgorithmSpec] = {}

    def register(
        self,
        name: str,
        func: Optional[Callable[..., Any]] = None,
        family: str = DISSIMILARITY,
        description: str = "",
        overwrite: bool = False,
    ):
        """
        Register a clustering function

        Usable directly, register("agnes", agnes), or as a decorator,
        @register("agnes").

        Args:
            name: Unique algorithm name
            func: Callable honouring the family contract
            family: One of 'dissimilarity', 'matrix', 'factorization'
            description: Short human-readable description
            overwrite: Replace an existing entry of the same name
        """
        if family not in FAMILIES:
            raise ValueError(f"Unknown algorithm family '{family}'. Valid: {FAMILIES}")

        def _register(f: Callable[..., Any]) -> Callable[..., Any]:
            if not callable(f):
                raise TypeError(f"Algorithm '{name}' must be callable, got {type(f).__name__}")
            if name in self._entries and not overwrite:
                raise ValueError(f"Algorithm '{name}' is already registered (pass overwrite=True to replace)")
            doc = description or (inspect.getdoc(f) or "").split("\n")[0]
            self._entries[name] = AlgorithmSpec(name=name, family=family, func=f, description=doc)
            return f

        if func is None:
            return _register
        return _register(func)

    def unregister(self, name: str) -> None:
        if name not in self._entries:
            raise DispatchError(name)
        del self._entries[name]

    def get(self, name: str) -> AlgorithmSpec:
        """Look up an algorithm, raising DispatchError if it is unknown"""
        try:
            return self._entries[name]
        except KeyError:
            raise DispatchError(name) from None

    def names(self, family: Optional[str] = None) -> List[str]:
        """Registered names, optionally restricted to one family"""
        return [n for n, spec in self._entries.items() if family is None or spec.family == family]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self):
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


def call_with_params(func: Callable[..., Any], *args: Any, **params: Any) -> Any:
    """Call func passing only the keyword params its signature accepts"""
    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return func(*args, **params)

    accepts_any = any(p.kind is inspect.Parameter.VAR_KEYWORD for p in sig.parameters.values())
    if accepts_any:
        return func(*args, **params)

    accepted = {
        name for name, p in sig.parameters.items()
        if p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    }
    return func(*args, **{k: v for k, v in params.items() if k in accepted})


registry = AlgorithmRegistry()
register_algorithm = registry.register
