"""内置目录共用的输入字段类型。"""

from __future__ import annotations

from typing import Literal

ImageSize = Literal[
    "square_hd",
    "square",
    "portrait_4_3",
    "portrait_16_9",
    "landscape_4_3",
    "landscape_16_9",
]
AspectRatio = Literal["16:9", "9:16", "1:1"]
VideoDuration = Literal[5, 10]

FAL_PROVIDER = "fal"
