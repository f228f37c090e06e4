"""
Pytest configuration and fixtures

Tests never reach a real collaborator: every test that needs generated
text passes an AsyncMock generator or overrides get_text_generator.
"""
import os
import sys

import pytest
from unittest.mock import AsyncMock

# Settings require a signing key before anything under core/ is imported
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-recovery-intake-0123456789")
os.environ.setdefault("LOG_FORMAT", "text")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.recovery.catalog import CatalogExercise, EquipmentClass, ExerciseCatalog, load_catalog  # noqa: E402


@pytest.fixture(scope="session")
def catalog() -> ExerciseCatalog:
    """The bundled catalog."""
    return load_catalog()


@pytest.fixture
def small_catalog() -> ExerciseCatalog:
    """Tiny catalog with known regions and equipment for exact assertions."""
    return ExerciseCatalog(
        [
            CatalogExercise("s1", "Wall Angel", "shoulder", EquipmentClass.BODYWEIGHT),
            CatalogExercise("s2", "Pendulum Swing", "shoulder", EquipmentClass.BODYWEIGHT),
            CatalogExercise("s3", "Sleeper Stretch", "shoulder", EquipmentClass.BODYWEIGHT),
            CatalogExercise("s4", "Shoulder Rolls", "shoulder", EquipmentClass.BODYWEIGHT),
            CatalogExercise("s5", "Band External Rotation", "shoulder", EquipmentClass.BAND),
            CatalogExercise("s6", "Band Pull-Apart", "shoulder", EquipmentClass.BAND),
            CatalogExercise("k1", "Wall Sit", "knee", EquipmentClass.BODYWEIGHT),
            CatalogExercise("k2", "Heel Slide", "knee", EquipmentClass.BODYWEIGHT),
        ],
        version="test-1",
    )


@pytest.fixture
def mock_generator():
    """Collaborator stub. Set .generate.return_value / side_effect per test."""
    generator = AsyncMock()
    generator.generate = AsyncMock(return_value='{"message": "Where does it hurt?", "quickReplies": ["Shoulder", "Knee"]}')
    return generator
