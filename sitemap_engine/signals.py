from django.dispatch import Signal

# Sent after a regeneration run has written its output.
# Arguments: url_count, files, warnings
sitemap_generated = Signal()
