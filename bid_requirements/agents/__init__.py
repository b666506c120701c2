from .base_agent import BaseAgent
from .taxonomy_agent import TaxonomyDiscoveryAgent
from .category_extraction_agent import CategoryExtractionAgent

__all__ = [
    "BaseAgent",
    "TaxonomyDiscoveryAgent",
    "CategoryExtractionAgent",
]
