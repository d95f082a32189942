"""Shared pytest fixtures."""

import os

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

import pygame
import pytest

import postfix


@pytest.fixture
def parser() -> postfix.MathParser:
    return postfix.MathParser()


@pytest.fixture
def strictParser() -> postfix.MathParser:
    return postfix.MathParser(strict=True)


@pytest.fixture
def screen() -> pygame.Surface:
    """Offscreen stand-in for the display surface."""
    return pygame.Surface((800, 800))
