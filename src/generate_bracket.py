import argparse
import logging
import random
import sys

from bracket.errors import TournamentError
from bracket.serialization import to_json, to_yaml
from bracket.tournament import regenerate_from_roster


def format_fixtures(state):
    """Group fixtures as text: a '# Group X' header, then 'Team 1 vs Team 2' lines."""
    names = {team.id: team.name for team in state.teams}
    blocks = []
    for group in state.group_names():
        lines = [f"# {group}"]
        for match in state.group_matches:
            if match.round_name == group:
                lines.append(f"{names[match.team1_id]} vs {names[match.team2_id]}")
        blocks.append('\n'.join(lines))
    return '\n\n'.join(blocks)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Generate groups and fixtures from a roster file.')
    parser.add_argument('roster', help='Roster file, one entrant per line: "Name - A"')
    parser.add_argument('--name', default='', help='Tournament name')
    parser.add_argument('--groups', type=int, default=1, help='Number of groups')
    parser.add_argument('--mode', choices=['singles', 'doubles'], default='singles')
    parser.add_argument('--knockout-type', choices=['top1', 'top2'], default='top2')
    parser.add_argument('--no-shared-third', action='store_true', help='Play a third-place match')
    parser.add_argument('--seed', type=int, help='Seed for the pairing and group draw')
    parser.add_argument('--format', choices=['text', 'yaml', 'json'], default='text')
    parser.add_argument('--verbose', action='store_true')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    with open(args.roster, mode='r', encoding='utf-8') as file:
        roster = file.read()

    config = {
        'num_groups': args.groups,
        'mode': args.mode,
        'knockout_type': args.knockout_type,
        'shared_third_place': not args.no_shared_third,
    }
    rng = random.Random(args.seed) if args.seed is not None else None
    try:
        state = regenerate_from_roster(roster, config, name=args.name, rng=rng)
    except TournamentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.format == 'json':
        print(to_json(state))
    elif args.format == 'yaml':
        print(to_yaml(state), end='')
    else:
        print(format_fixtures(state))
    return 0


if __name__ == '__main__':
    sys.exit(main())
