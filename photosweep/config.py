from dataclasses import dataclass, field, asdict, fields
from typing import Optional
import yaml
from pathlib import Path

@dataclass
class QualityConfig:
    """Weights and thresholds for the quality heuristics"""
    brightness_weight: float = 0.2
    contrast_weight: float = 0.3
    sharpness_weight: float = 0.5
    underexposed_below: float = 0.1
    overexposed_above: float = 0.9
    exposure_penalty_score: float = 0.3  # brightness term when badly exposed
    contrast_scale: float = 128.0
    dark_pixel_level: int = 50  # samples below this count as "dark"
    screenshot_dark_ratio: float = 0.1


@dataclass
class ThumbnailConfig:
    """Configuration for preview renditions"""
    max_dimension: int = 300
    jpeg_quality: int = 80


@dataclass
class DuplicateDetectionConfig:
    """Configuration for duplicate detection"""
    hash_algorithm: str = "sha256"
    hash_size: int = 8  # perceptual hash grid, 8x8 = 64 bits
    similarity_threshold: int = 5  # max Hamming distance for near duplicates


@dataclass
class CatalogConfig:
    """Configuration for catalog queries"""
    blur_threshold: float = 0.7
    default_limit: int = 20
    max_limit: int = 100


@dataclass
class SystemConfig:
    """System-wide configuration"""
    n_workers: int = 4
    use_threading: bool = False
    max_batch_size: int = 10
    timeout_base_seconds: float = 10.0
    timeout_per_mb_seconds: float = 2.0
    database_path: str = "data/photos.db"
    thumbnail_dir: str = "data/thumbnails"
    log_dir: str = "logs"
    log_level: str = "INFO"

    quality: QualityConfig = field(default_factory=QualityConfig)
    thumbnail: ThumbnailConfig = field(default_factory=ThumbnailConfig)
    duplicate_detection: DuplicateDetectionConfig = field(
        default_factory=DuplicateDetectionConfig
    )
    catalog: CatalogConfig = field(default_factory=CatalogConfig)

    def validate(self):
        """Reject settings the analyzers cannot work with"""
        q = self.quality
        for name in ('brightness_weight', 'contrast_weight', 'sharpness_weight'):
            if getattr(q, name) < 0:
                raise ValueError(f"quality.{name} must not be negative")
        for name in ('underexposed_below', 'overexposed_above',
                     'exposure_penalty_score', 'screenshot_dark_ratio'):
            if not 0.0 <= getattr(q, name) <= 1.0:
                raise ValueError(f"quality.{name} must lie in [0, 1]")
        if q.contrast_scale <= 0:
            raise ValueError("quality.contrast_scale must be positive")
        if not 0.0 <= self.catalog.blur_threshold <= 1.0:
            raise ValueError("catalog.blur_threshold must lie in [0, 1]")
        if not 1 <= self.catalog.default_limit <= self.catalog.max_limit:
            raise ValueError("catalog.default_limit must lie in [1, max_limit]")
        if self.thumbnail.max_dimension < 1:
            raise ValueError("thumbnail.max_dimension must be positive")
        if self.n_workers < 1 or self.max_batch_size < 1:
            raise ValueError("n_workers and max_batch_size must be positive")
        return self

    def save(self, path: str = "config.yaml"):
        """Save configuration to YAML file"""
        with open(path, 'w') as f:
            yaml.dump(asdict(self), f, default_flow_style=False, indent=2)

    @classmethod
    def load(cls, path: Optional[str] = "config.yaml") -> 'SystemConfig':
        """Load configuration from YAML file"""
        if path is None or not Path(path).exists():
            return cls()  # Return default config

        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        config = cls()

        # Load system settings
        for f in fields(cls):
            if f.name in _SECTIONS or f.name not in config_dict:
                continue
            setattr(config, f.name, config_dict[f.name])

        # Load nested sections, keeping defaults for missing keys
        for name, section_cls in _SECTIONS.items():
            if name in config_dict:
                current = asdict(getattr(config, name))
                current.update({
                    k: v for k, v in (config_dict[name] or {}).items()
                    if k in current
                })
                setattr(config, name, section_cls(**current))

        return config.validate()


_SECTIONS = {
    'quality': QualityConfig,
    'thumbnail': ThumbnailConfig,
    'duplicate_detection': DuplicateDetectionConfig,
    'catalog': CatalogConfig,
}
