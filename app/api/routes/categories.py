"""Category CRUD, tree navigation, import/export, grid, search and sync endpoints"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from pydantic import ValidationError
from typing import List
from uuid import UUID
import logging

from app.db.base import get_db_session
from app.services.category_service import CategoryService
from app.services.category_grid_service import CategoryGridService
from app.services.category_tree import TreeStructureError
from app.schemas.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
    CategoryListResponse,
    CategoryQuery,
    CategorySearch,
    CategorySearchResult,
    CategorySync,
    CategoryImport,
    CategoryImportResponse,
    CategoryExportResponse,
    CategoryNode,
    ShallowChildrenResponse,
    SubcategoryEnsure,
    SubcategoryEnsureResponse,
    CategoryGridRequest,
    CategoryGridResponse,
)

logger = logging.getLogger(__name__)

categories_router = APIRouter(prefix="/categories")


def _invalid_tree(exc: Exception) -> HTTPException:
    if isinstance(exc, ValidationError):
        detail = exc.errors(include_url=False, include_context=False, include_input=False)
    else:
        detail = str(exc)
    return HTTPException(status_code=422, detail=detail)


@categories_router.get("", response_model=CategoryListResponse)
def list_categories(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db_session),
):
    """List root categories with pagination"""
    categories, count = CategoryService(db).list_categories(skip, limit)
    return CategoryListResponse(result=categories, count=count)


@categories_router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_category(data: CategoryCreate, db: Session = Depends(get_db_session)):
    """
    Create a category from a nested tree.

    Every nested child is validated on save; one invalid node rejects the
    whole tree with 422 and nothing is stored. With ``parent_id`` the new
    category is added under that category's tree.
    """
    try:
        return CategoryService(db).create_category(data)
    except (ValidationError, TreeStructureError) as e:
        logger.warning(f"Rejected category '{data.name}': {e}")
        raise _invalid_tree(e)
    except Exception as e:
        logger.error(f"Error creating category: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@categories_router.post("/query", response_model=CategoryListResponse)
def query_categories(query: CategoryQuery, db: Session = Depends(get_db_session)):
    """List categories with their trees, filtered by the caller's lines of service"""
    result = CategoryService(db).get_nested(query.current_user, query.get_all_categories)
    return CategoryListResponse(result=result, count=len(result))


@categories_router.post("/search", response_model=List[CategorySearchResult])
def search_categories(search: CategorySearch, db: Session = Depends(get_db_session)):
    """Search nested categories by name"""
    return CategoryService(db).search_categories(search.search)


@categories_router.post("/sync/create", response_model=CategoryListResponse)
def sync_create_categories(data: CategorySync, db: Session = Depends(get_db_session)):
    """
    Bulk upsert categories keyed on create_uuid.

    Stored categories that are not part of the payload are deactivated.
    """
    try:
        result = CategoryService(db).sync_create_categories(data.as_list())
    except (ValidationError, TreeStructureError) as e:
        logger.warning(f"Rejected category sync: {e}")
        raise _invalid_tree(e)
    except Exception as e:
        logger.error(f"Error syncing categories: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    return CategoryListResponse(result=result, count=len(result))


@categories_router.post("/grid", response_model=CategoryGridResponse)
@categories_router.post("/grid-flatten", response_model=CategoryGridResponse)
def category_grid(request: CategoryGridRequest, db: Session = Depends(get_db_session)):
    """Flattened category rows with breadcrumbs, filtered, sorted and windowed"""
    return CategoryGridService(db).grid(request)


@categories_router.post("/import", response_model=CategoryImportResponse, status_code=status.HTTP_201_CREATED)
def import_categories(data: CategoryImport, db: Session = Depends(get_db_session)):
    """Create root categories from a tree export; nothing is stored if any node is invalid"""
    try:
        return CategoryService(db).import_categories(data.as_list())
    except (ValidationError, ValueError) as e:
        logger.warning(f"Rejected category import: {e}")
        raise _invalid_tree(e)
    except Exception as e:
        logger.error(f"Error importing categories: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@categories_router.get("/export", response_model=CategoryExportResponse)
def export_categories(db: Session = Depends(get_db_session)):
    """Every root category with its full tree"""
    return CategoryService(db).export_categories()


@categories_router.post("/ensure-subcategory", response_model=SubcategoryEnsureResponse)
def ensure_subcategory(data: SubcategoryEnsure, db: Session = Depends(get_db_session)):
    """Get or create the named child of a category (idempotent)"""
    try:
        result = CategoryService(db).ensure_subcategory(data)
    except (ValidationError, TreeStructureError) as e:
        logger.warning(f"Rejected subcategory '{data.name}': {e}")
        raise _invalid_tree(e)

    if result is None:
        raise HTTPException(status_code=404, detail="Parent category not found")
    return result


@categories_router.get("/find/{category_id}", response_model=CategoryNode)
def find_category(category_id: UUID, db: Session = Depends(get_db_session)):
    """Find a category anywhere in the stored trees"""
    found = CategoryService(db).find_category(category_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return found


@categories_router.get("/{category_id}/shallow-children", response_model=ShallowChildrenResponse)
def get_shallow_children(category_id: UUID, db: Session = Depends(get_db_session)):
    """Immediate children of a category, for lazy tree navigation"""
    result = CategoryService(db).get_shallow_children(category_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return result


@categories_router.get("/{category_id}", response_model=CategoryResponse)
def get_category(category_id: UUID, db: Session = Depends(get_db_session)):
    """Get one category with its tree"""
    category = CategoryService(db).get_category(category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@categories_router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: UUID, data: CategoryUpdate, db: Session = Depends(get_db_session)
):
    """
    Update a root category, or one nested in a tree.

    Nested categories only take non-structural fields; the root holding the
    change is returned.
    """
    try:
        category = CategoryService(db).update_category(category_id, data)
    except (ValidationError, TreeStructureError) as e:
        logger.warning(f"Rejected update of category {category_id}: {e}")
        raise _invalid_tree(e)
    except Exception as e:
        logger.error(f"Error updating category {category_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@categories_router.delete("/{category_id}")
def delete_category(category_id: UUID, db: Session = Depends(get_db_session)):
    """Delete a category and its nested tree"""
    if not CategoryService(db).delete_category(category_id):
        raise HTTPException(status_code=404, detail="Category not found")
    return {"message": "Category deleted successfully", "id": str(category_id)}
