#!/usr/bin/env python3
"""
Multi-Model Orchestrator - demo entry point

Builds an orchestrator from config.ini and runs prompts through it: the
router classifies each task and picks backends, the calls fan out in
parallel, divergent answers are reconciled by the consensus engine and every
call is charged to the cost tracker.

Usage:
    python main.py                          Run the demo queries
    python main.py --mock                   Run offline against mock backends
    python main.py --prompt "..." --strategy dual
    python main.py --print-config           Print the documented configuration keys
"""

import argparse
import configparser
import logging
import sys

from core.config import config_from_parser, generate_config_documentation, load_config
from core.exceptions import ConfigurationError, OrchestrationError
from llm_providers import LLMProviderError
from orchestrator import Orchestrator, OrchestrationRequest


def setup_logging(level: str = "info"):
    """Configure console logging for the demo"""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def create_orchestrator(config_file: str = "config.ini", mock: bool = False) -> Orchestrator:
    """
    Create and return a configured Orchestrator instance.

    Args:
        config_file: Path to configuration file
        mock: If True, use offline mock backends instead of real providers

    Returns:
        Orchestrator: Configured orchestrator

    Raises:
        ConfigurationError: If configuration is invalid
    """
    try:
        config = load_config(config_file)
        print(f"Configuration loaded successfully from {config_file}")
    except FileNotFoundError:
        print(f"Warning: {config_file} not found, using defaults and environment variables")
        config = config_from_parser(configparser.ConfigParser())

    try:
        return Orchestrator.from_config(config, mock=mock)
    except ConfigurationError as e:
        if mock:
            raise
        print(f"Real provider initialization failed: {e}")
        print("Falling back to mock mode...")
        return Orchestrator.from_config(config, mock=True)


def print_result(result):
    print(f"Strategy: {result.strategy.value}")
    print(f"Routing: {result.metadata['routing']} ({result.metadata['task_type']})")
    if result.metadata.get("strategy_adjustment"):
        print(f"Adjusted: {result.metadata['strategy_adjustment']}")
    for response in result.responses:
        print(f"  {response.model_name}: {response.latency_ms}ms, ${response.total_cost:.4f}")
    for failure in result.metadata["failures"]:
        print(f"  {failure['backend']} failed: {failure['error']}")
    if result.consensus:
        consensus = result.consensus
        print(
            f"Consensus: {consensus.method.value}, agreement {consensus.agreement:.2f}, "
            f"confidence {consensus.confidence:.2f}, review {'required' if consensus.requires_review else 'not required'}"
        )
    print(f"Answer: {result.primary.content[:300]}")
    print(f"Total cost: ${result.total_cost:.4f}, latency {result.total_latency_ms}ms")


def print_cost_summary(orchestrator: Orchestrator):
    tracker = orchestrator.cost_tracker
    stats = tracker.get_stats()

    print("\n=== Cost Summary ===")
    print(f"Requests: {stats.total_requests}, total ${stats.total_cost:.4f}, "
          f"avg ${stats.avg_cost_per_request:.4f}/request")
    for model_name, model_stats in stats.by_model.items():
        print(f"  {model_name}: {model_stats['requests']} requests, ${model_stats['cost']:.4f}, "
              f"avg latency {model_stats['avg_latency']:.0f}ms")

    optimization = tracker.get_optimization_recommendations()
    for recommendation in optimization.recommendations:
        print(f"  Recommendation ({recommendation.effort} effort): {recommendation.description} "
              f"- saves ~${recommendation.estimated_savings:.4f}")

    for alert in tracker.get_recent_alerts():
        print(f"  Alert: {alert.message}")


def main():
    parser = argparse.ArgumentParser(description="Multi-Model Orchestrator demo")
    parser.add_argument('--config', default='config.ini', help='Path to configuration file')
    parser.add_argument('--mock', action='store_true', help='Use offline mock backends')
    parser.add_argument('--prompt', help='Run a single prompt instead of the demo queries')
    parser.add_argument('--strategy', choices=['single', 'dual', 'triple'], help='Orchestration strategy')
    parser.add_argument('--models', nargs='+', help='Explicit backends, bypassing the router')
    parser.add_argument('--log-level', choices=['debug', 'info', 'warning', 'error'],
                        default='warning', help='Logging level')
    parser.add_argument('--print-config', action='store_true',
                        help='Print the documented configuration keys and exit')

    args = parser.parse_args()

    if args.print_config:
        print(generate_config_documentation())
        return 0

    setup_logging(args.log_level)
    print("=== Multi-Model Orchestrator Demo ===\n")

    try:
        orchestrator = create_orchestrator(args.config, mock=args.mock)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    if args.prompt:
        requests = [OrchestrationRequest(prompt=args.prompt, strategy=args.strategy, models=args.models)]
    else:
        requests = [
            OrchestrationRequest(prompt="Debug this Python function that raises a KeyError on empty input"),
            OrchestrationRequest(prompt="Write a short story about a lighthouse keeper", strategy="dual"),
            OrchestrationRequest(prompt="What is 17% of 2,340? Answer with the number only.", strategy="triple"),
            OrchestrationRequest(prompt="Summarize the key points of the attached incident report",
                                 user_id="demo-user", session_id="demo-session"),
        ]

    for i, request in enumerate(requests, 1):
        print(f"\n--- Query {i}: {request.prompt} ---")
        try:
            print_result(orchestrator.orchestrate(request))
        except (OrchestrationError, LLMProviderError, ConfigurationError) as e:
            print(f"Error: Error processing query: {e}")

    print_cost_summary(orchestrator)
    print("\n=== Demo Complete ===")
    return 0


if __name__ == "__main__":
    sys.exit(main())
