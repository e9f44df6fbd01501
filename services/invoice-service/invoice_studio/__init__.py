"""Invoice Studio: invoice totals, template rendering and document export."""

__version__ = "1.0.0"
