# app/schemas/category.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Dict, Any, Literal, Union
from uuid import UUID, uuid4
from datetime import datetime


class CategoryNode(BaseModel):
    """Typed nested category, stored inside its root's children tree"""
    id: Optional[UUID] = Field(default_factory=uuid4, description="Identifier of the nested category")
    name: str = Field(..., min_length=1, description="Display name of the category")
    description: Optional[str] = None
    active: bool = True
    create_uuid: Optional[str] = Field(None, description="External identity used to match nodes on sync")
    parent: Optional[UUID] = Field(None, description="Identifier of the enclosing category")
    create_created_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    children: List["CategoryNode"] = Field(default_factory=list)

    # Unknown keys are passthrough attributes and are kept verbatim
    model_config = ConfigDict(extra="allow")

    @field_validator("children", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return [] if value is None else value


class CategoryBase(BaseModel):
    """Base Pydantic model for Category data"""
    name: str = Field(..., min_length=1, description="Display name of the category")
    description: Optional[str] = Field(None, description="Optional description of the category")
    active: bool = Field(True, description="Inactive categories are hidden from non-admin listings")
    create_uuid: Optional[str] = Field(None, description="External identity used to match categories on sync")
    create_created_date: Optional[datetime] = None


class CategoryCreate(CategoryBase):
    """
    Schema for creating a new Category.

    Children are taken as plain nested objects; they are validated and typed
    when the category is first saved. Extra keys are kept as attributes.
    With ``parent_id`` the category is inserted under that category's tree.
    """
    children: List[Dict[str, Any]] = Field(default_factory=list)
    parent_id: Optional[UUID] = Field(None, description="Category to nest the new category under")
    created_by: Optional[str] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("children", mode="before")
    @classmethod
    def none_as_empty(cls, value):
        return [] if value is None else value


class CategoryUpdate(BaseModel):
    """Schema for updating a Category (all fields optional)"""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    active: Optional[bool] = None
    create_uuid: Optional[str] = None
    create_created_date: Optional[datetime] = None
    children: Optional[List[CategoryNode]] = None
    attributes: Optional[Dict[str, Any]] = None
    modified_by: Optional[str] = None


class CategoryInDB(CategoryBase):
    """Schema for Category as stored in DB (includes DB fields)"""
    id: UUID
    parent_id: Optional[UUID] = Field(None, description="Enclosing category, set for nested categories")
    children: List[CategoryNode] = Field(default_factory=list)
    attributes: Dict[str, Any] = Field(default_factory=dict)
    created_by: Optional[str] = None
    modified_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("children", "attributes", mode="before")
    @classmethod
    def none_as_empty(cls, value, info):
        if value is None:
            return [] if info.field_name == "children" else {}
        return value


class CategoryResponse(CategoryInDB):
    """Schema for API responses"""
    pass


class CategoryListResponse(BaseModel):
    """Paged list of categories"""
    result: List[CategoryInDB]
    count: int


class Role(BaseModel):
    name: Optional[str] = None


class LineOfService(BaseModel):
    id: UUID


class CurrentUser(BaseModel):
    """Caller identity used to filter categories by line of service"""
    guid: Optional[str] = None
    roles: List[Role] = Field(default_factory=list)
    lines_of_service: List[LineOfService] = Field(default_factory=list)


class CategoryQuery(BaseModel):
    """Body of the line-of-service listing"""
    current_user: Optional[CurrentUser] = None
    get_all_categories: bool = False


class CategorySearch(BaseModel):
    search: str = Field(..., description="Case-insensitive text matched against category names")


class CategorySearchResult(BaseModel):
    """Flattened nested category with its breadcrumb"""
    name: str
    bread_crumb: str
    created_at: Optional[datetime] = None
    active: bool = True


class CategorySync(BaseModel):
    """Body of the bulk sync endpoint; one root or a list of roots"""
    categories: Union[List[Dict[str, Any]], Dict[str, Any]]

    def as_list(self) -> List[Dict[str, Any]]:
        if isinstance(self.categories, dict):
            return [self.categories]
        return list(self.categories)


class CategoryImport(CategorySync):
    """Body of the tree import; one root or a list of roots"""
    pass


class CategoryImportResponse(BaseModel):
    imported: int
    categories: List[CategoryInDB]


class CategoryExportResponse(BaseModel):
    count: int
    categories: List[CategoryInDB]


class ShallowChild(BaseModel):
    """Immediate child of a category, without its own sub-tree"""
    id: Optional[UUID] = None
    name: str
    active: bool = True
    children_count: int = 0


class ShallowChildrenResponse(BaseModel):
    result: List[ShallowChild]
    parent_name: str


class SubcategoryEnsure(BaseModel):
    """Body of ensure-subcategory; extra keys are set on a newly created node"""
    parent_id: UUID
    name: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="allow")


class SubcategoryEnsureResponse(BaseModel):
    existed: bool
    category: CategoryNode


class GridSort(BaseModel):
    col_id: str
    sort: Literal["asc", "desc"] = "asc"


class GridFilter(BaseModel):
    """Column filter: text, number or set"""
    filter_type: Literal["text", "number", "set"] = "text"
    type: Optional[str] = None
    filter: Optional[Any] = None
    filter_to: Optional[Any] = None
    values: Optional[List[str]] = None


class CategoryGridRequest(BaseModel):
    """Server-side grid window over the flattened category tree"""
    start_row: int = Field(0, ge=0)
    end_row: int = Field(100, ge=0)
    sort_model: List[GridSort] = Field(default_factory=list)
    filter_model: Dict[str, GridFilter] = Field(default_factory=dict)


class CategoryGridResponse(BaseModel):
    rows: List[Dict[str, Any]]
    last_row: int


CategoryNode.model_rebuild()
