import argparse
import asyncio
import signal
import sys

from dotenv import load_dotenv


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description='Research Assistant')
	parser.add_argument('topic', nargs='?', help='Topic of the research report')
	parser.add_argument('--organization', help='Desired section organization for the report')
	parser.add_argument('--context', default='', help='Additional context for planning')
	parser.add_argument(
		'--feedback', action='append', default=[], help='Feedback applied to the generated plan (repeatable)'
	)
	parser.add_argument('--no-search', action='store_true', help='Write sections without web research')
	parser.add_argument('--temperature', type=float, default=0.7, help='Temperature for section writing')
	parser.add_argument('--max-concurrent', type=int, help='Maximum sections written in parallel')
	parser.add_argument('--max-queries', type=int, help='Maximum search queries per section')
	parser.add_argument(
		'--include-all-sections', action='store_true', help='Also write sections that need no research'
	)
	parser.add_argument('--output', help='Directory for the generated report')
	parser.add_argument('--config', help='Path to a YAML config file')
	return parser


async def run(args: argparse.Namespace) -> int:
	from research_assistant.core.cancellation import CancellationToken, OperationCancelledError
	from research_assistant.core.config_loader import ConfigLoader
	from research_assistant.core.engine import ExecutionCancelledError
	from research_assistant.core.orchestrator import Orchestrator
	from research_assistant.utils.logger import logger

	config_loader = ConfigLoader(args.config)
	options = config_loader.get_execution_options()
	if args.max_concurrent is not None:
		options.max_concurrent_sections = args.max_concurrent
	if args.max_queries is not None:
		options.max_search_queries_per_section = args.max_queries
	if args.include_all_sections:
		options.include_non_research_sections = True

	orchestrator = Orchestrator(
		config_loader=config_loader,
		execution_options=options,
		use_search=not args.no_search,
		writing_temperature=args.temperature,
		output_dir=args.output,
	)

	token = CancellationToken()
	loop = asyncio.get_running_loop()
	try:
		loop.add_signal_handler(signal.SIGINT, token.cancel)
	except NotImplementedError:
		pass  # Windows event loops: KeyboardInterrupt ends the run instead

	try:
		report, output_path = await orchestrator.run(
			args.topic, args.organization, args.context, feedback=args.feedback, token=token
		)
	except ExecutionCancelledError as e:
		logger.warning(f'Generation cancelled. Progress: {e.plan.get_progress()}')
		return 1
	except OperationCancelledError:
		logger.warning('Generation cancelled during planning')
		return 1
	finally:
		await orchestrator.close()

	print(f'\nReport saved to: {output_path}')
	print(f'Sections: {len(report.sections)}, citations: {len(report.citations)}, tokens: {report.tokens_used:,}')
	return 0


def main() -> int:
	load_dotenv()

	parser = build_parser()
	args = parser.parse_args()

	if not args.topic:
		parser.print_usage()
		print('Error: a report topic is required')
		return 1

	return asyncio.run(run(args))


if __name__ == '__main__':
	try:
		sys.exit(main())
	except KeyboardInterrupt:
		print('\n\nGeneration interrupted.')
		sys.exit(1)
	except Exception as e:
		print(f'\nError: {e}')
		sys.exit(1)
