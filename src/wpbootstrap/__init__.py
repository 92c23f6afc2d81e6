"""wp-bootstrap — provision a WordPress host on a fresh EC2 instance."""

__version__ = "0.1.0"
