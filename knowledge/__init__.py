"""
Sprout knowledge base.

Contains static reference data:
- WHO growth standard medians
- Developmental milestone catalog
- Source citations (global and regional)
"""
