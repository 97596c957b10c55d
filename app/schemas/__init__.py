# app/schemas/__init__.py
from app.schemas.category import (
    CategoryNode,
    CategoryBase,
    CategoryCreate,
    CategoryUpdate,
    CategoryInDB,
    CategoryResponse,
    CategoryListResponse,
    CategoryQuery,
    CategorySearch,
    CategorySearchResult,
    CategorySync,
    CategoryImport,
    CategoryImportResponse,
    CategoryExportResponse,
    ShallowChild,
    ShallowChildrenResponse,
    SubcategoryEnsure,
    SubcategoryEnsureResponse,
    CategoryGridRequest,
    CategoryGridResponse,
    CurrentUser,
)
