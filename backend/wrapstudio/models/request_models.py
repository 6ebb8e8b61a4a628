"""
Pydantic models for API request validation.

Responsibilities:
- Define schemas for incoming JSON payloads
- Validate data types and required fields
"""

from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class SubjectAttributes(BaseModel):
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[Union[int, str]] = None
    vehicle_type: Optional[str] = None
    category: Optional[str] = None


class RenderRequest(BaseModel):
    subject: SubjectAttributes
    mode: str = Field("hero", description="Rendering intent, e.g. hero, fade, panel, approval")
    plan: Literal["pipeline", "flat", "cartesian"] = "flat"
    variants: Optional[List[str]] = Field(None, description="Keys for flat plans, stages for pipelines")
    sequential: bool = Field(False, description="Throttle a flat plan to one variant at a time")
    dimensions: Optional[Dict[str, List[str]]] = Field(None, description="Ordered dimensions for cartesian plans")
    include: Optional[List[str]] = Field(None, description="Variant keys to keep from a cartesian plan")
    panels: Optional[List[str]] = None

    color_hex: Optional[str] = None
    color_name: Optional[str] = None
    finish: Optional[str] = None
    has_metallic_flakes: bool = False
    custom_design_url: Optional[str] = None
    labels: List[str] = Field(default_factory=list)

    scope: Optional[str] = Field(None, description="Runs in the same scope supersede each other")
    artifact_id: Optional[str] = Field(None, description="Persist as a new version of this artifact")
    auto_persist: bool = True


class PersistRequest(BaseModel):
    artifact_id: Optional[str] = None
    change_description: Optional[str] = None


class VersionRequest(BaseModel):
    variant_results: Dict[str, str]
    change_description: Optional[str] = None
