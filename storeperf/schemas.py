"""Pydantic models for the store API response envelopes."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ApiResponse(BaseModel):
    """Every endpoint answers HTTP 200 and encodes its own status here."""

    responseCode: int
    message: str | None = None


class UserType(BaseModel):
    usertype: str


class Category(BaseModel):
    usertype: UserType
    category: str


class Product(BaseModel):
    id: int
    name: str
    price: str = Field(..., pattern=r"^Rs\. \d+$")
    brand: str
    category: Category


class Brand(BaseModel):
    id: int
    brand: str


class ProductsListResponse(ApiResponse):
    responseCode: Literal[200]
    products: list[Product]


class BrandsListResponse(ApiResponse):
    responseCode: Literal[200]
    brands: list[Brand] = Field(..., min_length=1)
