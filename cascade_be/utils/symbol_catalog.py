from decimal import Decimal


class SymbolKind:
    """
    One configured symbol kind. Instances are immutable once created.

    Attributes:
        id (str): Stable identifier used in configs, grid snapshots and records.
        name (str): Display name.
        category (str): One of 'low', 'high' or 'scatter'.
        payout (Decimal): Base payout multiplier applied to the bet.
        weight (int|float): Relative generation weight among non-scatter kinds.
    """
    LOW = 'low'
    HIGH = 'high'
    SCATTER = 'scatter'
    CATEGORIES = (LOW, HIGH, SCATTER)

    __slots__ = ('id', 'name', 'category', 'payout', 'weight')

    def __init__(self, id, name, category, payout, weight):
        if category not in self.CATEGORIES:
            raise ValueError(f"Unknown symbol category '{category}' for symbol '{id}'.")
        object.__setattr__(self, 'id', id)
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'category', category)
        object.__setattr__(self, 'payout', Decimal(str(payout)))
        object.__setattr__(self, 'weight', weight)

    def __setattr__(self, key, value):
        raise AttributeError(f"SymbolKind '{self.id}' is immutable")

    @property
    def is_scatter(self):
        return self.category == self.SCATTER

    def __eq__(self, other):
        return isinstance(other, SymbolKind) and other.id == self.id

    def __hash__(self):
        return hash(self.id)

    def __repr__(self):
        return f"<SymbolKind {self.id} ({self.category})>"


class SymbolCatalog:
    """Fixed table of symbol kinds for one game, built once from configuration."""

    def __init__(self, kinds, scatter_id):
        self._kinds = {}
        self._order = []
        for kind in kinds:
            if kind.id in self._kinds:
                raise ValueError(f"Duplicate symbol id '{kind.id}' in catalog.")
            self._kinds[kind.id] = kind
            self._order.append(kind)

        scatter = self._kinds.get(scatter_id)
        if scatter is None or not scatter.is_scatter:
            raise ValueError(f"Scatter symbol '{scatter_id}' is not a scatter kind in the catalog.")
        self._scatter = scatter
        self._paying = tuple(k for k in self._order if not k.is_scatter)
        if not self._paying:
            raise ValueError("Catalog must contain at least one non-scatter symbol.")

    @classmethod
    def from_config(cls, symbols_data, scatter_id):
        kinds = [
            SymbolKind(s['id'], s.get('name', s['id']), s['type'], s.get('payout', 0), s.get('weight', 0))
            for s in symbols_data
        ]
        return cls(kinds, scatter_id)

    def get(self, symbol_id):
        """
        Look up a kind by id.

        Raises:
            KeyError: If the id is not in the catalog.
        """
        return self._kinds[symbol_id]

    def __contains__(self, symbol_id):
        return symbol_id in self._kinds

    def __iter__(self):
        return iter(self._order)

    def __len__(self):
        return len(self._order)

    @property
    def scatter(self):
        return self._scatter

    @property
    def paying_kinds(self):
        """Non-scatter kinds in configured order; this is the weighted draw table."""
        return self._paying

    def kinds_of(self, category):
        return tuple(k for k in self._order if k.category == category)

    def payout(self, kind):
        if not isinstance(kind, SymbolKind):
            kind = self.get(kind)
        return kind.payout

    @property
    def total_weight(self):
        return sum(k.weight for k in self._paying)
