from .templates import (
    CATEGORY_PROMPTS,
    EXPERIENCE_PERSONNEL_RULE,
    build_category_prompt,
    build_taxonomy_prompt,
    curated_category,
)

__all__ = [
    "CATEGORY_PROMPTS",
    "EXPERIENCE_PERSONNEL_RULE",
    "build_category_prompt",
    "build_taxonomy_prompt",
    "curated_category",
]
