"""Pipeline orchestrators for SceneCast."""

from scenecast.pipelines.video_pipeline import VideoPipeline, main

__all__ = ["VideoPipeline", "main"]
