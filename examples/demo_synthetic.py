#!/usr/bin/env python3
"""Generate a synthetic sensor stream for the guided recording protocol.

Writes a recording with three similar shapes, a steady stretch long enough
for phases 4 to 7, and two different shapes. Replay it to train a model
without a device.

Usage:
    python examples/demo_synthetic.py --output stream.json
    imu-gestures replay stream.json --guided --save-model model.pt
"""

import argparse
import math

from imu_gestures.recorder import SampleRecorder

REST = (-32.0, -32.0, -32.0)
INTERVAL_MS = 31.25


def shape(radius, offset, n=48):
    bx, by, bz = REST
    points = [
        (bx + offset + radius * math.cos(2 * math.pi * i / n),
         by + radius * math.sin(2 * math.pi * i / n),
         bz)
        for i in range(n)
    ]
    x = points[-1][0]
    while x - bx > 5.0:
        x -= 5.0
        points.append((x, by, bz))
    points.append(REST)
    return points


def main():
    parser = argparse.ArgumentParser(description="Write a synthetic guided-recording stream")
    parser.add_argument("--output", default="stream.json", help="Output file (.json or .npz)")
    parser.add_argument("--compact", action="store_true", help="Save as compressed npz")
    args = parser.parse_args()

    stream = []
    for _ in range(3):
        stream += [REST] * 5 + shape(radius=6.0, offset=20.0)
    stream += [REST] * 230
    for radius, offset in ((4.0, 24.0), (9.0, 18.0)):
        stream += [REST] * 5 + shape(radius=radius, offset=offset)
    stream += [REST] * 5

    recorder = SampleRecorder()
    recorder.start()
    for i, (x, y, z) in enumerate(stream):
        t = i * INTERVAL_MS
        recorder.add("x", x, timestamp=t)
        recorder.add("y", y, timestamp=t)
        recorder.add("z", z, timestamp=t)
    count = recorder.stop()

    if args.compact:
        recorder.save_compact(args.output)
    else:
        recorder.save(args.output)
    print(f"Wrote {count} events ({recorder.duration_ms / 1000:.1f}s) to {args.output}")


if __name__ == "__main__":
    main()
