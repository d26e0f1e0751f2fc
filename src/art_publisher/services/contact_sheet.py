"""Bundle documents: the metadata file and the HTML contact sheet."""

from collections.abc import Mapping, Sequence
from html import escape

from art_publisher.domain.uploads import BundleMetadata, FetchedAsset, NamedFile, Scalar

INDEX_NAME = "index.html"
METADATA_NAME = "metadata.json"

_STYLE = """
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'avenir next', avenir,
        'helvetica neue', helvetica, ubuntu, roboto, noto, 'segoe ui', arial,
        sans-serif;
      margin: 20px;
      background-color: #f4f4f4;
      color: #111111;
    }
    .images a { display: inline-block; }
    .images img { padding: 12px; }
"""


def image_name(position: int) -> str:
    """Return the bundle file name for the image at a launch position."""
    return f"{position}.png"


def build_metadata_file(
    description: str, parameters: Mapping[str, Scalar]
) -> NamedFile:
    """Serialize description and parameters into the metadata document."""
    metadata = BundleMetadata(description=description, parameters=dict(parameters))
    return NamedFile(
        name=METADATA_NAME,
        data=metadata.model_dump_json(indent=2).encode("utf-8"),
    )


def render_contact_sheet(
    assets: Sequence[FetchedAsset],
    description: str,
    parameters: Mapping[str, Scalar],
    metadata_address: str,
) -> str:
    """Render the index page listing every image with its content address."""
    image_links = "".join(
        f'<a href="{escape(asset.file.name)}" '
        f'data-cid="{escape(asset.content_address)}">'
        f'<img src="{escape(asset.file.name)}" alt="Generated Artwork"/></a>'
        for asset in assets
    )
    param_list = "".join(
        f"<dt>{escape(str(key))}</dt><dd>{escape(_format_scalar(value))}</dd>"
        for key, value in parameters.items()
    )
    metadata_link = (
        f'<a href="{METADATA_NAME}" data-cid="{escape(metadata_address)}">'
        f"{METADATA_NAME}</a>"
    )
    html = f"""
<!DOCTYPE html>
<html>
  <head>
  <meta charset="utf-8"/>
  <style>{_STYLE}</style>
  </head>
  <body>
    <h1>Prompt</h1><p>{escape(description)}</p>
    <h1>Parameters</h1><dl>{param_list}</dl>
    <p class='metadata'>{metadata_link}</p>
    <div class='images'>{image_links}</div>
  </body>
</html>
"""
    return html.strip()


def build_index_file(
    assets: Sequence[FetchedAsset],
    description: str,
    parameters: Mapping[str, Scalar],
    metadata_address: str,
) -> NamedFile:
    """Render the contact sheet as the bundle's index file."""
    html = render_contact_sheet(assets, description, parameters, metadata_address)
    return NamedFile(name=INDEX_NAME, data=html.encode("utf-8"))


def _format_scalar(value: Scalar) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
