import logging
import logging.config
from pathlib import Path

import click

from scratchbuild import oci
from scratchbuild.tar import tar_directory

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "%(levelname)s: %(message)s",
        },
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "scratchbuild": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "httpx": {"handlers": ["default"], "level": "WARNING", "propagate": False},
    },
}


def configure_logging(debug: bool = False):
    config = LOGGING_CONFIG
    if debug:
        config = {
            **LOGGING_CONFIG,
            "loggers": {
                name: {**logger, "level": "DEBUG"}
                for name, logger in LOGGING_CONFIG["loggers"].items()
            },
        }
    logging.config.dictConfig(config)


def _parse_labels(ctx, param, values: tuple[str, ...]) -> dict[str, str] | None:
    labels = {}
    for value in values:
        key, sep, label = value.partition("=")
        if not sep:
            raise click.BadParameter(f"{value!r} should contain an =")
        labels[key] = label
    return labels or None


@click.command()
@click.option(
    "--dir",
    "directory",
    help="Directory containing container content",
    default=".",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.option("-n", "--name", help="Image name", required=True)
@click.option(
    "-r", "--registry", help="Registry URL", default="https://index.docker.io"
)
@click.option("-u", "--user", help="Registry user name", envvar="SCRATCHBUILD_USER")
@click.option(
    "-p", "--password", help="Registry password", envvar="SCRATCHBUILD_PASSWORD"
)
@click.option(
    "--token",
    help="Registry bearer token, skips the username/password handshake",
    envvar="SCRATCHBUILD_TOKEN",
)
@click.option(
    "-t", "--tag", "tags", help="Image tag, repeat for more", multiple=True
)
@click.option("--env", help="Environment variable KEY=VALUE, repeat for more", multiple=True)
@click.option("--vol", "volumes", help="Volume path, repeat for more", multiple=True)
@click.option("--entrypoint", help="Entrypoint, split on whitespace")
@click.option(
    "--label",
    "labels",
    help="Label KEY=VALUE, repeat for more",
    multiple=True,
    callback=_parse_labels,
)
@click.option("--workdir", help="Working directory of the entrypoint")
@click.option("--user-id", help="User the container process runs as")
@click.option("--uncompressed", help="Store the layer without gzip", is_flag=True)
@click.option("-d", "--debug", help="Debug output", is_flag=True)
def cli(
    directory: Path,
    name: str,
    registry: str,
    user: str | None,
    password: str | None,
    token: str | None,
    tags: tuple[str, ...],
    env: tuple[str, ...],
    volumes: tuple[str, ...],
    entrypoint: str | None,
    labels: dict[str, str] | None,
    workdir: str | None,
    user_id: str | None,
    uncompressed: bool,
    debug: bool,
):
    """Build a single layer image from a directory and push it to a registry."""
    configure_logging(debug=debug)

    image_config = oci.ImageConfig(
        env=list(env) or None,
        entrypoint=entrypoint.split() if entrypoint else None,
        volumes=set(volumes) or None,
        labels=labels,
        working_dir=workdir,
        user=user_id,
    )
    try:
        layer = tar_directory(directory)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Failed to build tar file. {e}") from e

    with oci.Client(registry_url=registry) as client:
        try:
            if token is None:
                token = client.authenticate(name, username=user, password=password)
        except oci.RegistryError as e:
            raise click.ClickException(f"Failed to authenticate. {e}") from e

        repository = client.repository(name, credentials=oci.StaticToken(token))
        try:
            manifest = oci.build_image(
                repository,
                image_config=image_config,
                layer=layer,
                tags=tags or ("latest",),
                compress=not uncompressed,
            )
        except oci.RegistryError as e:
            message = f"Failed to build image. {e}"
            if e.__cause__ is not None:
                message = f"{message}: {e.__cause__}"
            raise click.ClickException(message) from e

    click.echo(manifest.descriptor.digest)


if __name__ == "__main__":
    cli()
