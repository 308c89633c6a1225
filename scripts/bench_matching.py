from __future__ import annotations

import argparse
import logging
import statistics
import time
from pathlib import Path
import sys

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import cv2
import numpy as np

from tmplgpu import DeviceOptions, Extremes, MatchMethod, TemplateMatcher, find_extremes
from tmplgpu.io import load_float_grid


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compare GPU template matching latency against OpenCV on crops of a single image."
    )
    parser.add_argument("image", type=Path, help="Grayscale or color image to search in.")
    parser.add_argument(
        "--method",
        type=str,
        choices=("sad", "ssd"),
        default="ssd",
        help="Dissimilarity metric. OpenCV is only compared for ssd (TM_SQDIFF).",
    )
    parser.add_argument(
        "--rounds",
        type=int,
        default=5,
        help="Number of template sizes to evaluate.",
    )
    parser.add_argument(
        "--start-size",
        type=int,
        default=10,
        help="Side length (pixels) of the first square template; also its offset from the top-left corner.",
    )
    parser.add_argument(
        "--size-step",
        type=int,
        default=5,
        help="Growth of the template side length between rounds.",
    )
    parser.add_argument(
        "--power-preference",
        type=str,
        choices=("high-performance", "low-power"),
        default="high-performance",
        help="Adapter preference passed to wgpu.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log device and buffer activity.")
    return parser.parse_args()


def format_extremes(extremes: Extremes) -> str:
    return (
        f"min={extremes.min_value:.4f} at {extremes.min_location} ({len(extremes.min_locations)} tied), "
        f"max={extremes.max_value:.4f} at {extremes.max_location} ({len(extremes.max_locations)} tied)"
    )


def benchmark() -> None:
    args = parse_arguments()
    if args.rounds <= 0:
        raise ValueError("rounds must be positive")
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    method = MatchMethod.parse(args.method)
    image = load_float_grid(args.image)
    gpu_ms: list[float] = []
    cv_ms: list[float] = []

    with TemplateMatcher(options=DeviceOptions(power_preference=args.power_preference)) as matcher:
        for round_index in range(args.rounds):
            n = args.start_size + round_index * args.size_step
            template = np.ascontiguousarray(image[n : 2 * n, n : 2 * n])
            if template.shape != (n, n):
                print(f"template {n}x{n} at ({n},{n}) does not fit the image, stopping")
                break

            start = time.perf_counter()
            matcher.submit(image, template, method)
            submit_elapsed = time.perf_counter() - start

            if method is MatchMethod.SUM_SQUARED_DIFFERENCES:
                start = time.perf_counter()
                reference = cv2.matchTemplate(image, template, cv2.TM_SQDIFF)
                cv_elapsed = (time.perf_counter() - start) * 1000.0
                cv_ms.append(cv_elapsed)
                print(f"cv2.matchTemplate took {cv_elapsed:.2f} ms")
                print(f"  {format_extremes(find_extremes(reference))}")

            start = time.perf_counter()
            result = matcher.retrieve()
            elapsed = (time.perf_counter() - start + submit_elapsed) * 1000.0
            gpu_ms.append(elapsed)
            print(f"tmplgpu {method.entry_point} ({n}x{n} template) took {elapsed:.2f} ms")
            print(f"  {format_extremes(find_extremes(result))}")
            print()

    if gpu_ms:
        print("Summary")
        print("-" * 72)
        print(f"GPU latency (ms) : mean={statistics.fmean(gpu_ms):.2f}, median={statistics.median(gpu_ms):.2f}, max={max(gpu_ms):.2f}")
    if cv_ms:
        print(f"CV2 latency (ms) : mean={statistics.fmean(cv_ms):.2f}, median={statistics.median(cv_ms):.2f}, max={max(cv_ms):.2f}")


if __name__ == "__main__":
    benchmark()
