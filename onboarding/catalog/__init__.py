"""
onboarding/catalog - 권한 카탈로그

정적 권한 테이블(YAML)과 권한 그룹 검증/해석을 제공합니다.
"""

from onboarding.catalog.catalog import PermissionCatalog, PermissionFragment
from onboarding.catalog.source import (
    CatalogTable,
    FeatureDefinition,
    GroupDefinition,
    PermissionCatalogSource,
    PolicyStatement,
    YamlCatalogSource,
    load_tables,
    parse_table,
)

__all__ = [
    "CatalogTable",
    "FeatureDefinition",
    "GroupDefinition",
    "PermissionCatalog",
    "PermissionCatalogSource",
    "PermissionFragment",
    "PolicyStatement",
    "YamlCatalogSource",
    "load_tables",
    "parse_table",
]
