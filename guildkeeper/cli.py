"""
guildkeeper command-line front end.

Runs the same operations the bot offers to members, acting on behalf of a
given member id. Handy for moderators and for checking a configuration
before the bot goes live.

Usage:
    guildkeeper channel create --as 1234 my-channel "What this is about"
    guildkeeper channel update 5678 --as 1234 --name new-name --no-nsfw
    guildkeeper channel claim 5678 --as 1234
    guildkeeper roles assign colors --as 1234 111 222
    guildkeeper ophase --as 1234 --password quack
    guildkeeper --dry-run channel sort

Reads credentials from .env or the environment:
    DISCORD_BOT_TOKEN=your-bot-token
    DISCORD_GUILD_ID=your-guild-id
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from . import ophase, ordering
from .client import DiscordClient
from .config import Config, load_config, load_credentials
from .errors import ConfigurationError, GuildkeeperError, RemoteTimeoutError
from .lifecycle import ChannelLifecycle
from .models import Invocation
from .moderation import report_message
from .roles import RoleAssignments, assignment_menus, describe
from .welcome import post_welcome, update_welcome

DEFAULT_CONFIG = "guildkeeper.toml"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guildkeeper",
        description="Self-managed channels and self-assignable roles for a Discord server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Credentials are read from .env or the environment:
  DISCORD_BOT_TOKEN=your-bot-token
  DISCORD_GUILD_ID=your-guild-id
""",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG,
                        help=f"Path to the TOML configuration (default: {DEFAULT_CONFIG}).")
    parser.add_argument("--env", default=None,
                        help="Path to a .env file with credentials.")
    parser.add_argument("--dry-run", action="store_true",
                        help="Read from Discord but only print the changes that would be made.")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable debug logging.")

    groups = parser.add_subparsers(dest="group", required=True)

    def actor(p):
        p.add_argument("--as", dest="actor", type=int, required=True,
                       help="Member id to act on behalf of.")

    # channel ...
    channel = groups.add_parser("channel", help="Self-managed channels.")
    channel_cmds = channel.add_subparsers(dest="action", required=True)

    p = channel_cmds.add_parser("create", help="Create a channel.")
    actor(p)
    p.add_argument("name")
    p.add_argument("description")

    p = channel_cmds.add_parser("update", help="Change name, description or NSFW flag.")
    actor(p)
    p.add_argument("channel", type=int)
    p.add_argument("--name")
    p.add_argument("--description")
    p.add_argument("--nsfw", action=argparse.BooleanOptionalAction, default=None)

    for name, text in (("claim", "Take over an unclaimed or abandoned channel."),
                       ("delete", "Delete a channel.")):
        p = channel_cmds.add_parser(name, help=text)
        actor(p)
        p.add_argument("channel", type=int)

    channel_cmds.add_parser("sort", help="Sort the self-managed category by name.")

    # roles ...
    roles = groups.add_parser("roles", help="Self-assignable roles.")
    roles_cmds = roles.add_subparsers(dest="action", required=True)

    p = roles_cmds.add_parser("assign", help="Set a member's roles within one group.")
    actor(p)
    p.add_argument("assignment")
    p.add_argument("roles", nargs="*", help="Role ids to hold afterwards.")

    p = roles_cmds.add_parser("menu", help="Print the select menus a member would see.")
    actor(p)

    # welcome ...
    welcome = groups.add_parser("welcome", help="Welcome message.")
    welcome_cmds = welcome.add_subparsers(dest="action", required=True)

    p = welcome_cmds.add_parser("post", help="Post the welcome message.")
    p.add_argument("channel", type=int)

    p = welcome_cmds.add_parser("update", help="Rewrite an existing welcome message.")
    p.add_argument("channel", type=int)
    p.add_argument("message", type=int)

    # report
    p = groups.add_parser("report", help="Report a message to the moderators.")
    actor(p)
    p.add_argument("channel", type=int)
    p.add_argument("message", type=int)
    p.add_argument("--reason", required=True)

    # ophase
    p = groups.add_parser("ophase", help="Join the orientation phase group.")
    actor(p)
    p.add_argument("--password", required=True, help="The group password.")

    return parser


def run(args: argparse.Namespace, config: Config, client: DiscordClient, guild_id: int) -> None:
    invocation = Invocation(user_id=getattr(args, "actor", 0), guild_id=guild_id)
    sm = config.self_management

    if args.group == "channel":
        lifecycle = ChannelLifecycle(client, sm)
        if args.action == "create":
            channel = lifecycle.create(invocation, args.name, args.description)
            print(f"Created #{channel.name} (id={channel.id})")
        elif args.action == "update":
            channel = client.get_channel(args.channel)
            after = lifecycle.update(invocation, channel, name=args.name,
                                     description=args.description, nsfw=args.nsfw)
            print(f"Updated #{after.name}")
        elif args.action == "claim":
            channel = lifecycle.claim(invocation, client.get_channel(args.channel))
            print(f"#{channel.name} now belongs to {args.actor}")
        elif args.action == "delete":
            channel = client.get_channel(args.channel)
            lifecycle.delete(invocation, channel)
            print(f"Deleted #{channel.name}")
        elif args.action == "sort":
            positions = ordering.reorder(client, guild_id, sm.category)
            print(f"Sorted {len(positions)} channel(s).")

    elif args.group == "roles":
        if args.action == "assign":
            engine = RoleAssignments(client, config.assignments)
            delta = engine.reconcile(invocation, args.assignment, args.roles)
            print(describe(delta))
        elif args.action == "menu":
            member = client.get_member(guild_id, args.actor)
            print(json.dumps(assignment_menus(config.assignments, member.role_ids), indent=2))

    elif args.group == "welcome":
        if args.action == "post":
            post_welcome(client, config, invocation, client.get_channel(args.channel))
            print("Welcome message posted.")
        elif args.action == "update":
            update_welcome(client, config, invocation, args.channel, args.message)
            print("Welcome message updated.")

    elif args.group == "report":
        message = client.get_message(args.channel, args.message)
        report_message(client, config.moderation, invocation, message, args.reason)
        print("The message has been reported.")

    elif args.group == "ophase":
        reply = ophase.join(client, config, invocation, args.password)
        embed = reply["embeds"][0]
        print(f"{embed['title']} {embed['description']}")


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )

    try:
        config = load_config(args.config)
        token, guild_id = load_credentials(args.env)
        if not guild_id or not guild_id.isdigit():
            raise ConfigurationError("DISCORD_GUILD_ID is not set in .env or environment.")
        client = DiscordClient(token=token, dry_run=args.dry_run)
        run(args, config, client, int(guild_id))
    except RemoteTimeoutError as exc:
        print(f"ERROR: {exc.message}")
        return 2
    except GuildkeeperError as exc:
        print(f"ERROR: {exc.message}")
        return 1

    if args.dry_run:
        print("Dry run finished. No changes were made to Discord.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
