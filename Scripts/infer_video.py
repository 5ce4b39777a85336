import argparse
import logging
import sys

from video_bridge import (
    InProcessVideoHost,
    SinkConfig,
    SubprocessVideoHost,
    apply_cli_overrides,
    collect_cli_dests,
    infer_video,
    init_logging,
    load_job_config,
)
from video_bridge.config import HOST_KINDS, VideoJobConfig
from yolo_det import YoloError, YoloPostConfig, load_class_names, load_detector

try:
    from tqdm import tqdm  # type: ignore
except Exception:  # pragma: no cover
    tqdm = None

logger = logging.getLogger("video_bridge.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run YOLO detection over every frame of a video and re-encode it.")
    parser.add_argument("--config", default=None, help="JSON job config; command line flags override its values.")
    parser.add_argument("--model", default=None, help="Path to a YOLO model (.onnx/.torchscript).")
    parser.add_argument("--classes", default=None, help="Class names: newline list or data.yaml with a names mapping.")
    parser.add_argument("--input", default=None, help="Input video file.")
    parser.add_argument("--output", default=None, help="Output video file.")
    parser.add_argument("--conf", dest="conf_threshold", type=float, default=None, help="Confidence threshold.")
    parser.add_argument("--iou", dest="iou_threshold", type=float, default=None, help="IoU threshold for NMS.")
    parser.add_argument("--no-draw", dest="draw_boxes", action="store_false", help="Do not draw boxes on the output.")
    parser.add_argument("--log-level", dest="log_level", type=int, default=None, help="0 off .. 5 trace (default 3).")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument("--host", choices=HOST_KINDS, default=None, help="Where decoded frames live.")
    parser.add_argument("--codec", dest="codec_name", default=None, help="Output encoder (default h264).")
    parser.add_argument("--progress", action="store_true", help="Show a progress bar (needs tqdm).")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    return parser


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else list(argv)
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_job_config(args.config) if args.config else VideoJobConfig()
    config = apply_cli_overrides(config, args, collect_cli_dests(parser, argv))
    missing = config.missing_required()
    if missing:
        parser.error(f"missing required settings: {', '.join(missing)}")

    init_logging(config.log_level, args.log_file)

    class_names = load_class_names(config.classes)
    detector = load_detector(
        config.model,
        class_names,
        backend=config.backend,
        post_cfg=YoloPostConfig(conf_threshold=config.conf_threshold, iou_threshold=config.iou_threshold),
        onnx_providers=config.onnx_providers,
    )

    sink_config = SinkConfig.for_codec(config.codec_name)
    host_cls = SubprocessVideoHost if config.host == "subprocess" else InProcessVideoHost

    pbar = None
    if args.progress and tqdm is None:
        print("Note: tqdm is not installed; progress bar disabled.")

    def on_progress(done: int, total: int) -> None:
        nonlocal pbar
        if pbar is None:
            pbar = tqdm(total=total, unit="frame")
        pbar.update(1)

    try:
        with host_cls(sink_config=sink_config) as host:
            host.init_logging(config.log_level)
            per_frame = infer_video(
                detector,
                host,
                config.input,
                config.output,
                draw_boxes=config.draw_boxes,
                progress=on_progress if (args.progress and tqdm is not None) else None,
            )
    except YoloError as exc:
        logger.error("%s (status %d)", exc, int(exc.status))
        return int(exc.status)
    finally:
        if pbar is not None:
            pbar.close()

    total = sum(len(dets) for dets in per_frame)
    print(f"{len(per_frame)} frames, {total} detections -> {config.output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
