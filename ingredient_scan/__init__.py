"""Ingredient label scan service."""
