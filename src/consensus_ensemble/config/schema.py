"""
Pydantic configuration schemas for type safety and validation
"""
from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import List, Optional, Literal, Tuple
from pathlib import Path


class SOMConfig(BaseModel):
    """Self-organizing map settings for the hc_som algorithm"""
    model_config = ConfigDict(extra="forbid")

    xdim: int = Field(
        default=10,
        ge=1,
        description="x dimension of the SOM grid"
    )
    ydim: int = Field(
        default=10,
        ge=1,
        description="y dimension of the SOM grid"
    )
    rlen: int = Field(
        default=200,
        ge=1,
        description="Number of times the complete data set is presented to the map"
    )
    alpha: Tuple[float, float] = Field(
        default=(0.05, 0.01),
        description="Learning rate endpoints, interpolated linearly over training"
    )

    @field_validator("alpha")
    @classmethod
    def validate_alpha(cls, v: Tuple[float, float]) -> Tuple[float, float]:
        """Learning rates must be positive"""
        if any(a <= 0 for a in v):
            raise ValueError(f"Learning rates must be positive, got {v}")
        return v


class DBSCANConfig(BaseModel):
    """Density-based clustering settings"""
    model_config = ConfigDict(extra="forbid")

    eps: float = Field(
        default=0.5,
        gt=0.0,
        description="Radius of the epsilon neighborhood"
    )
    min_pts: int = Field(
        default=2,
        ge=1,
        description="Minimum number of points in the eps region for core points"
    )


class PrepareConfig(BaseModel):
    """Data preparation configuration"""
    model_config = ConfigDict(extra="forbid")

    mode: Literal["none", "full", "sampled"] = Field(
        default="none",
        description="Prepare the full dataset once, every subsample, or never"
    )
    scale: bool = Field(
        default=True,
        description="Scale variables after filtering"
    )
    type: Literal["conventional", "robust"] = Field(
        default="conventional",
        description="Mean/sd scaling or median/MAD scaling"
    )
    min_var: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum variance for a variable to be kept"
    )


class OutputConfig(BaseModel):
    """Persistence of the ensemble array"""
    model_config = ConfigDict(extra="forbid")

    save: bool = Field(
        default=False,
        description="Write the ensemble array to disk after the run"
    )
    file_name: str = Field(
        default="CCOutput",
        min_length=1,
        description="File stem of the written object"
    )
    time_saved: bool = Field(
        default=False,
        description="Append the save timestamp to the file name"
    )
    directory: Path = Field(
        default=Path("."),
        description="Directory the file is written to"
    )


class EnsembleConfig(BaseModel):
    """Root configuration schema for one consensus ensemble run"""
    model_config = ConfigDict(extra="forbid")

    nk: List[int] = Field(
        default=[2, 3, 4],
        min_length=1,
        description="Cluster counts (k) to compute"
    )
    p_item: float = Field(
        default=0.8,
        gt=0.0,
        le=1.0,
        description="Proportion of rows drawn in each subsample"
    )
    reps: int = Field(
        default=1000,
        ge=1,
        description="Number of subsamples"
    )
    algorithms: Optional[List[str]] = Field(
        default=None,
        description="Algorithm names; None runs every built-in algorithm"
    )
    nmf_method: List[str] = Field(
        default=["brunet", "lee"],
        min_length=1,
        description="NMF objective variants run when 'nmf' is requested"
    )
    distance: List[str] = Field(
        default=["euclidean"],
        min_length=1,
        description="Distance specifiers for dissimilarity-based algorithms"
    )
    som: SOMConfig = Field(default_factory=SOMConfig)
    dbscan: DBSCANConfig = Field(default_factory=DBSCANConfig)
    prepare: PrepareConfig = Field(default_factory=PrepareConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    seed_nmf: int = Field(
        default=123456,
        ge=0,
        description="Random seed for NMF initialisation"
    )
    seed_data: int = Field(
        default=1,
        ge=0,
        description="Seed for the subsample draws shared by all algorithms"
    )
    progress: bool = Field(
        default=True,
        description="Display a progress bar"
    )
    n_jobs: int = Field(
        default=1,
        ge=1,
        description="Number of parallel workers for clustering calls"
    )

    @field_validator("nk")
    @classmethod
    def validate_nk(cls, v: List[int]) -> List[int]:
        """Cluster counts must be >= 2 and unique; order is preserved"""
        invalid = [k for k in v if k < 2]
        if invalid:
            raise ValueError(f"Cluster counts must be >= 2, got {invalid}")
        if len(set(v)) != len(v):
            raise ValueError(f"Cluster counts must be unique, got {v}")
        return v

    @field_validator("algorithms", "nmf_method", "distance")
    @classmethod
    def validate_names(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        """Names must be non-empty and not repeated"""
        if v is None:
            return v
        if len(v) == 0:
            raise ValueError("At least one name is required")
        if any(not name.strip() for name in v):
            raise ValueError("Names must be non-empty strings")
        if len(set(v)) != len(v):
            raise ValueError(f"Duplicate names: {v}")
        return v
