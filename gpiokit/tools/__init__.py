"""Command-line tools for listing, finding, describing and setting GPIO lines."""