"""Ultralytics YOLO adapters for the perception collaborators.

`YoloHoldDetector` wraps a segmentation model trained on the hold palette
(`betavision.core.color.hsv.HOLD_CLASSES`); `YoloPoseEstimator` wraps a COCO
pose model. Both run on CPU by default.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from ultralytics import YOLO

from betavision.core.color.hsv import HOLD_CLASSES
from betavision.core.detectors.base import COCO_KEYPOINTS
from betavision.core.types import Frame, HoldCandidate, Keypoint

DEFAULT_HOLD_MODEL = "models/holds-seg.pt"
DEFAULT_POSE_MODEL = "yolo11n-pose.pt"


def _to_numpy(value: Any) -> np.ndarray:
    """Convert a torch tensor (or array-like) to a numpy array."""

    if hasattr(value, "cpu"):
        value = value.cpu()
    return value.numpy() if hasattr(value, "numpy") else np.asarray(value)


class _YoloModel:
    """Shared model loading for the hold and pose adapters."""

    def __init__(self, model_name: str, conf: float, device: str = "cpu", task: str | None = None) -> None:
        self.model_name = model_name
        self.is_onnx = model_name.lower().endswith(".onnx")
        self.device = device
        self.conf = conf
        self.model = YOLO(model_name, task=task)

        # Avoid .to(device) on ONNX exports; Ultralytics raises TypeError.
        if not self.is_onnx:
            try:
                self.model.to(self.device)
            except Exception:
                # predict(device=...) still enforces the device.
                pass
        self._predict_kwargs: dict[str, Any] = {
            "conf": self.conf,
            "verbose": False,
            "device": self.device,
        }

    def _predict_one(self, frame: Frame) -> Any | None:
        results = self.model.predict(frame, **self._predict_kwargs)
        if not results:
            return None
        return results[0]


class YoloHoldDetector(_YoloModel):
    """Hold segmentation model returning palette-labelled candidates."""

    def __init__(self, model_name: str = DEFAULT_HOLD_MODEL, conf: float = 0.5, device: str = "cpu") -> None:
        super().__init__(model_name, conf=conf, device=device, task="segment")

    def _label(self, names: Any, class_id: int) -> str:
        """Resolve a class id to a palette label, preferring the model's own names."""

        name = None
        if isinstance(names, dict):
            name = names.get(class_id)
        elif isinstance(names, (list, tuple)) and 0 <= class_id < len(names):
            name = names[class_id]
        if name and str(name).endswith("-hold"):
            return str(name)
        return HOLD_CLASSES.get(class_id, "gray-hold")

    def detect(self, frame: Frame) -> list[HoldCandidate]:
        """Run inference on a single frame and return hold candidates."""

        result = self._predict_one(frame)
        if result is None:
            return []
        boxes = getattr(result, "boxes", None)
        if boxes is None or len(boxes) == 0:
            return []

        # Ultralytics Boxes.data = (x1, y1, x2, y2, conf, cls)
        data = _to_numpy(boxes.data)
        if data.ndim != 2 or data.shape[1] < 6:
            return []

        polygons: list[np.ndarray] = []
        masks = getattr(result, "masks", None)
        if masks is not None and getattr(masks, "xy", None) is not None:
            polygons = [np.asarray(p) for p in masks.xy]

        names = getattr(result, "names", None)
        out: list[HoldCandidate] = []
        for i, row in enumerate(data):
            x1, y1, x2, y2, conf_v, cls_v = (float(v) for v in row[:6])
            poly = polygons[i] if i < len(polygons) else np.zeros((0, 2))
            out.append(
                HoldCandidate(
                    x=(x1 + x2) / 2.0,
                    y=(y1 + y2) / 2.0,
                    width=x2 - x1,
                    height=y2 - y1,
                    confidence=conf_v,
                    color_class=self._label(names, int(cls_v)),
                    polygon=[(float(px), float(py)) for px, py in poly],
                    detection_id=f"det-{i}",
                )
            )
        return out


class YoloPoseEstimator(_YoloModel):
    """Single-climber pose: keypoints of the most confident person."""

    def __init__(self, model_name: str = DEFAULT_POSE_MODEL, conf: float = 0.3, device: str = "cpu") -> None:
        super().__init__(model_name, conf=conf, device=device, task="pose")
        # COCO person class only.
        self._predict_kwargs["classes"] = [0]

    def estimate(self, frame: Frame) -> list[Keypoint]:
        result = self._predict_one(frame)
        if result is None:
            return []
        kpts = getattr(result, "keypoints", None)
        if kpts is None or getattr(kpts, "data", None) is None:
            return []
        kd = _to_numpy(kpts.data)
        if kd.ndim != 3 or kd.shape[0] == 0:
            return []

        best = 0
        boxes = getattr(result, "boxes", None)
        if boxes is not None and getattr(boxes, "conf", None) is not None:
            confs = _to_numpy(boxes.conf)
            if confs.size:
                best = int(np.argmax(confs))

        person = kd[best]
        out: list[Keypoint] = []
        for name, row in zip(COCO_KEYPOINTS, person):
            score = float(row[2]) if row.shape[0] > 2 else 1.0
            out.append(Keypoint(name=name, x=float(row[0]), y=float(row[1]), score=score))
        return out
